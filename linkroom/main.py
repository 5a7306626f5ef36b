# linkroom/main.py

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from linkroom.core.config import Settings, settings as default_settings
from linkroom.core.logging import setup_logging, get_logger
from linkroom.core.state import build_state
from linkroom.api.routes import root, health, metrics, upload, qrcode, server_info
from linkroom.api import websocket as websocket_module
from linkroom.services.network import get_local_ip
from linkroom.services.upload_storage import URL_PREFIX

# Configure logging first
setup_logging()
logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_state = build_state(settings)
        app_state.upload_storage.ensure_root()

        if app_state.redis_service is not None:
            # Redis fan-out: publisher drains to Redis, listener routes back
            await app_state.redis_service.connect()
            app_state.redis_service.start()

        app.state.linkroom = app_state
        logger.info("🚀 LinkRoom started")
        logger.info("   Local:   http://localhost:%d", settings.PORT)
        logger.info("   Network: http://%s:%d", get_local_ip(), settings.PORT)

        yield

        await app_state.coordinator.close()
        await app_state.connection_manager.close()
        if app_state.redis_service is not None:
            await app_state.redis_service.close()
        logger.info("LinkRoom stopped")

    app = FastAPI(title="LinkRoom", lifespan=lifespan)

    # Devices on the LAN load the page from whatever address they were given
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # REST routes
    app.include_router(root.router)
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(upload.router)
    app.include_router(qrcode.router)
    app.include_router(server_info.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    # Uploaded files, created on startup
    app.mount(URL_PREFIX, StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")

    return app


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run(app, host=default_settings.HOST, port=default_settings.PORT)


if __name__ == "__main__":
    run()

# ============================================================================
# END OF FILE
# ============================================================================
