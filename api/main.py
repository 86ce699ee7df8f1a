"""
Live RTP Monitor - FastAPI Application

Main entry point for the API
"""

from fastapi import FastAPI, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
from loguru import logger
from collections import defaultdict
import asyncio
import contextlib
import json
import sys
import time

from analysis.merge import build_image_url
from config import get_settings
from database import get_db, init_db
from database import repository
from events.bus import bus, make_event, INITIAL
from models.rtp_models import Window
from scheduler.jobs import (
    get_monitor,
    pause_polling,
    resume_polling,
    run_cleanup,
    scheduler_status,
    start_scheduler,
    stop_scheduler,
)

# Initialize settings
settings = get_settings()

# ── Rate Limiting ─────────────────────────────────────────────────────
RATE_LIMIT_WINDOW = 60   # seconds
RATE_LIMIT_MAX = 120     # requests per window
_rate_store: dict = defaultdict(list)  # ip -> [timestamps]

# Create FastAPI app
app = FastAPI(
    title="Live RTP Monitor API",
    description="Decoded live RTP deviations, Bayesian scores and rankings",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Authorization", "Content-Type", "X-API-Key"],
)


# ── Security Middleware ───────────────────────────────────────────────

@app.middleware("http")
async def security_middleware(request: Request, call_next):
    """Rate limiting + API key enforcement on write endpoints."""
    client_ip = request.client.host if request.client else "unknown"

    # 1. Rate limiting
    now = time.time()
    _rate_store[client_ip] = [
        t for t in _rate_store[client_ip] if t > now - RATE_LIMIT_WINDOW
    ]
    if len(_rate_store[client_ip]) >= RATE_LIMIT_MAX:
        return JSONResponse(
            status_code=429,
            content={"detail": "Rate limit exceeded. Try again later."},
        )
    _rate_store[client_ip].append(now)

    # 2. API key enforcement on mutation endpoints
    if request.method == "POST" and settings.API_KEY:
        api_key = request.headers.get("X-API-Key", "")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=403,
                content={"detail": "Invalid or missing API key."},
            )

    # 3. Security headers
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


def configure_logging():
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)


def initial_event():
    """Last complete cycle, sent to every client right after it connects"""
    result = get_monitor().last_result
    return make_event(INITIAL, result.to_dict() if result else None)


@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    configure_logging()
    logger.info("Starting Live RTP Monitor API...")

    # Initialize database
    try:
        init_db()
        logger.info("✓ Database initialized")
    except Exception as e:
        logger.error(f"✗ Database initialization failed: {e}")

    # Set event loop for sync publishing
    bus.set_loop(asyncio.get_running_loop())
    logger.info("✓ Event bus configured")

    # Start background scheduler (live RTP poll, history cleanup)
    try:
        start_scheduler()
        logger.info(f"✓ Background scheduler started (poll every {settings.UPDATE_INTERVAL_SECONDS}s)")
    except Exception as e:
        logger.error(f"✗ Scheduler start failed: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown"""
    logger.info("Shutting down Live RTP Monitor API...")
    stop_scheduler()


# ── Push channels ─────────────────────────────────────────────────────

@app.get("/events/rtp")
async def sse_rtp_events():
    """Server-Sent Events stream: initial, update, error and schema_drift events."""
    async def event_generator():
        q = await bus.subscribe()
        try:
            yield f"data: {json.dumps(initial_event())}\n\n"
            while True:
                event = await q.get()
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            await bus.unsubscribe(q)
    return StreamingResponse(event_generator(), media_type="text/event-stream")


async def _forward_events(websocket: WebSocket, q: asyncio.Queue):
    try:
        while True:
            event = await q.get()
            await websocket.send_json(event)
    except (WebSocketDisconnect, RuntimeError) as e:
        # Client went away between receive() calls
        logger.info(f"WebSocket send stopped: {e}")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Same events as /events/rtp over a WebSocket"""
    await websocket.accept()
    q = await bus.subscribe()
    sender = None
    try:
        await websocket.send_json(initial_event())
        sender = asyncio.create_task(_forward_events(websocket, q))
        # Inbound messages are ignored; the loop only watches for the close
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info("WebSocket client disconnected")
                break
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    finally:
        if sender is not None:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
        await bus.unsubscribe(q)


# ── Read endpoints ────────────────────────────────────────────────────

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Live RTP Monitor API",
        "version": "1.0.0",
        "status": "running",
        "strategy": settings.DERIVATION_STRATEGY,
    }


@app.get("/health")
@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    result = get_monitor().last_result
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "scheduler": scheduler_status(),
        "subscribers": bus.subscriber_count,
        "last_cycle": result.completed_at.isoformat() if result and result.completed_at else None,
    }


@app.get("/api/games/latest")
async def get_latest_games(db: Session = Depends(get_db)):
    """Games of the most recent stored cycle"""
    try:
        rows = repository.get_latest_snapshots(db)
        games = [repository.snapshot_to_dict(r, settings.SITE_BASE_URL) for r in rows]
        return {"success": True, "count": len(games), "data": games}
    except Exception as e:
        logger.error(f"Error fetching latest games: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/games/top-variations")
async def get_top_variations(limit: int = 10, db: Session = Depends(get_db)):
    """Largest daily deviation moves over the last 24 hours"""
    try:
        data = repository.get_top_variations(db, limit=limit)
        for item in data:
            item["image_url"] = build_image_url(settings.SITE_BASE_URL, item["image_path"])
        return {"success": True, "count": len(data), "data": data}
    except Exception as e:
        logger.error(f"Error fetching top variations: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/games/{game_id}")
async def get_game(game_id: str, db: Session = Depends(get_db)):
    """Metadata, window metrics and leaderboard positions of one game"""
    data = repository.get_game_full_data(db, game_id, settings.SITE_BASE_URL)
    if data is None:
        raise HTTPException(status_code=404, detail=f"Game {game_id} not found")
    return {"success": True, "data": data}


@app.get("/api/games/{game_id}/history")
async def get_game_history(game_id: str, limit: int = 100, db: Session = Depends(get_db)):
    try:
        rows = repository.get_game_history(db, game_id, limit=limit)
        history = [repository.snapshot_to_dict(r, settings.SITE_BASE_URL) for r in rows]
        return {"success": True, "count": len(history), "data": history}
    except Exception as e:
        logger.error(f"Error fetching history for game {game_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/stats")
async def get_stats(db: Session = Depends(get_db)):
    """Get system statistics"""
    try:
        return {"success": True, "data": repository.get_stats(db)}
    except Exception as e:
        logger.error(f"Error fetching stats: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/rankings/{window}")
async def get_rankings(window: Window, db: Session = Depends(get_db)):
    """Stored best / worst leaderboards for 24h or 7d"""
    try:
        return {"success": True, "window": window.value, "data": repository.get_rankings(db, window)}
    except Exception as e:
        logger.error(f"Error fetching {window.value} rankings: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/cycle/latest")
async def get_latest_cycle():
    """Last complete in-memory cycle, including parse reports"""
    result = get_monitor().last_result
    if result is None:
        raise HTTPException(status_code=404, detail="No cycle completed yet")
    return {"success": True, "data": result.to_dict()}


# ── Control endpoints ─────────────────────────────────────────────────

@app.post("/api/updates/start")
async def start_updates():
    resumed = resume_polling()
    return {"success": resumed, "message": "Updates started" if resumed else "Polling job not found"}


@app.post("/api/updates/stop")
async def stop_updates():
    paused = pause_polling()
    return {"success": paused, "message": "Updates stopped" if paused else "Polling job not found"}


@app.post("/api/cleanup")
async def cleanup(days: Optional[int] = None):
    """Delete history older than `days` (default: retention setting)"""
    if days is None:
        days = settings.HISTORY_RETENTION_DAYS
    if days < 1:
        raise HTTPException(status_code=400, detail="days must be >= 1")
    removed = run_cleanup(days)
    return {"success": True, "message": f"Removed {removed} rows older than {days} days", "removed": removed}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_RELOAD
    )
