"""
Helpdesk Shift Simulator - FastAPI Backend
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from helpdesk_sim.config import Settings, get_settings
from helpdesk_sim.middleware.logging_middleware import LoggingMiddleware
from helpdesk_sim.repositories.action_log_repository import ActionLogRepository
from helpdesk_sim.routes import admin, health, session_ws
from helpdesk_sim.services.audit import AuditLogger
from helpdesk_sim.services.broadcast import WebSocketGateway
from helpdesk_sim.services.catalog import ContentCatalog
from helpdesk_sim.services.engine import SimulationEngine
from helpdesk_sim.utils.clock import Clock
from helpdesk_sim.utils.dice import Dice
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine: SimulationEngine = app.state.engine
    logger.info(
        f"Loaded {len(engine.catalog.templates)} ticket templates, "
        f"{len(engine.catalog.articles)} KB articles "
        f"(action log persistence: {'on' if engine.audit.persistent else 'off'})"
    )
    yield
    engine.shutdown()
    await engine.audit.flush()


def create_app(
    settings: Optional[Settings] = None,
    catalog: Optional[ContentCatalog] = None,
    clock: Optional[Clock] = None,
    dice: Optional[Dice] = None,
    action_logs: Optional[ActionLogRepository] = None
) -> FastAPI:
    """
    Build the application

    Args:
        settings: Defaults to get_settings()
        catalog: Defaults to the catalog under settings.content_dir
        clock: Time source shared by the engine
        dice: Random source shared by the engine
        action_logs: Supabase repository; created from settings when
            credentials are configured

    Returns:
        FastAPI app with the engine on app.state
    """
    settings = settings or get_settings()
    catalog = catalog or ContentCatalog.load(settings.content_dir)
    if action_logs is None and settings.audit_persistence_enabled:
        action_logs = ActionLogRepository()

    gateway = WebSocketGateway()
    engine = SimulationEngine(
        settings,
        catalog,
        gateway,
        clock=clock,
        dice=dice,
        audit=AuditLogger(action_logs)
    )

    app = FastAPI(
        title="Helpdesk Shift Simulator",
        description="Real-time IT helpdesk shift simulation for behavioral experiments",
        version=VERSION,
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.gateway = gateway
    app.state.action_logs = action_logs

    # Middleware runs bottom-up: CORS first, then logging
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(admin.router)
    app.include_router(health.router)
    app.include_router(session_ws.router)

    @app.get("/")
    async def root():
        return {"message": "Helpdesk Shift Simulator API", "version": VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.fastapi_host, port=settings.fastapi_port)
