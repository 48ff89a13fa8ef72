from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1 import events, meetings, reports, ws
from app.core.capabilities import build_capabilities
from app.core.config import settings
from app.core.database import SessionLocal, init_db
from app.core.logging import setup_logging
from app.realtime.bus import RoomHub
from app.realtime.gateway import SessionGateway


def create_app(session_factory=None, create_tables: bool = True) -> FastAPI:
    setup_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if create_tables and session_factory is None:
            init_db()
        yield

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Real-time behavioral authenticity monitoring for remote interviews",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.capabilities = build_capabilities()
    app.state.hub = RoomHub()
    app.state.gateway = SessionGateway(app.state.hub, session_factory or SessionLocal)

    # Health check
    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "ok"}

    # API Routers
    app.include_router(meetings.router, prefix=settings.API_V1_PREFIX, tags=["Meetings"])
    app.include_router(events.router, prefix=settings.API_V1_PREFIX, tags=["Events"])
    app.include_router(reports.router, prefix=settings.API_V1_PREFIX, tags=["Reports"])
    app.include_router(ws.router, tags=["Realtime"])

    return app


app = create_app()
