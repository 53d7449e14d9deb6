"""
Leaderboard bot - operator diagnostics API
Exposes health, cache and concurrency state of the solved.ac cache layer

Run with: uvicorn leaderboard.main:app --port 8080
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request

from leaderboard.api import CachedSolvedACClient, InvalidHandleError, SolvedACError, UpstreamStatusError
from config.settings import settings

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger("leaderboard.main")

APP_NAME = "Leaderboard Bot"


def create_app(client: Optional[CachedSolvedACClient] = None) -> FastAPI:
    """
    Build the diagnostics app around one cached client.

    The client's sweeper runs for the lifetime of the app and the client
    is closed on shutdown.
    """
    cached_client = client or CachedSolvedACClient.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cached_client.start()
        logger.info(f"{APP_NAME} {settings.app_version} started")
        try:
            yield
        finally:
            cached_client.close()

    app = FastAPI(
        title=APP_NAME,
        description="Cache and concurrency diagnostics for the solved.ac client",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.client = cached_client
    app.state.started_at = time.time()

    @app.get("/health")
    def health_check(request: Request):
        """Health check endpoint."""
        client: CachedSolvedACClient = request.app.state.client
        return {
            "status": "ok",
            "version": settings.app_version,
            "uptime_seconds": round(time.time() - request.app.state.started_at, 1),
            "sweeper_running": client.cache.is_sweeping,
        }

    @app.get("/cache/stats")
    def cache_stats(request: Request):
        """Get cache statistics."""
        return request.app.state.client.get_diagnostics()

    @app.post("/cache/clear")
    def cache_clear(request: Request):
        """Manually invalidate every cached response."""
        cleared = request.app.state.client.clear_cache()
        return {"cleared": cleared}

    @app.post("/cache/sweep")
    def cache_sweep(request: Request):
        """Run one bounded sweep now instead of waiting for the next tick."""
        cleaned = request.app.state.client.cache.sweep_expired()
        return {"cleaned": cleaned}

    @app.get("/concurrency/stats")
    def concurrency_stats(request: Request):
        """Current adaptive concurrency state."""
        return request.app.state.client.concurrency.get_stats().to_dict()

    @app.get("/users/{handle}")
    def user_info(handle: str, request: Request):
        """Profile for one handle, served from cache when possible."""
        client: CachedSolvedACClient = request.app.state.client
        try:
            info = client.get_user_info(handle)
        except InvalidHandleError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except UpstreamStatusError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=404, detail=f"Unknown handle: {handle}")
            raise HTTPException(status_code=502, detail=str(e))
        except (SolvedACError, TimeoutError) as e:
            logger.error(f"User lookup failed for {handle}: {e}")
            raise HTTPException(status_code=502, detail="solved.ac request failed")
        return info.model_dump()

    return app


app = create_app()
