"""HTTP API for on-demand playlist checks."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.monitor import PlaylistMonitor

# Subset of CheckResult.to_dict() returned under "data"
CHECK_DATA_KEYS = ('newSongs', 'playlist', 'emailSent', 'isFirstCheck')


def _error_detail(expose_errors: bool, detail: str) -> str:
    return detail if expose_errors else "Internal server error"


def create_app(
    monitor: PlaylistMonitor,
    logger: logging.Logger,
    expose_errors: bool = False
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        monitor: Playlist monitor used for checks
        logger: Logger instance
        expose_errors: Include error details in 500 responses

    Returns:
        FastAPI application
    """
    app = FastAPI(title="Spotify Playlist Monitor")
    router = APIRouter(prefix="/api/spotify")

    @app.get("/healthCheck")
    def health_check():
        return {
            'message': 'Server is running!',
            'timestamp': datetime.now(timezone.utc).isoformat()
        }

    # Sync handler: FastAPI runs it in a worker thread
    @router.get("/playlist/{playlist_id}/check")
    def check_playlist(playlist_id: str):
        result = monitor.check_playlist(playlist_id)

        if not result.success:
            return JSONResponse(
                status_code=500,
                content={
                    'success': False,
                    'message': 'Error checking playlist',
                    'error': _error_detail(expose_errors, result.error or result.message)
                }
            )

        payload = result.to_dict()
        return {
            'success': True,
            'message': payload['message'],
            'data': {key: payload[key] for key in CHECK_DATA_KEYS}
        }

    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={'message': 'Route not found'})
        return JSONResponse(status_code=exc.status_code, content={'message': str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                'success': False,
                'message': 'Internal Server Error',
                'error': _error_detail(expose_errors, str(exc))
            }
        )

    return app
