from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from core.auth import RequestAuthenticator
from core.config import Settings, get_settings
from core.database import build_engine, build_session_factory
from core.errors import register_error_handlers
from core.observability import setup_logging
from core.services import build_services
from models.base import Base
from models import user, verification, todo  # noqa: F401
from routers import auth_router, todo_router
from services.email_service import EmailSender
from services.scheduled_tasks import start_scheduler, stop_scheduler


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    session_factory: sessionmaker | None = None,
    email_sender: EmailSender | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    engine = engine or build_engine(settings)
    session_factory = session_factory or build_session_factory(engine)
    services = build_services(settings, session_factory, email_sender=email_sender)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        Base.metadata.create_all(bind=engine)
        scheduler = None
        if settings.SCHEDULER_ENABLED:
            scheduler = start_scheduler(services.cleanup_scheduler, services.reminder_scheduler, settings)
        try:
            yield
        finally:
            stop_scheduler(scheduler)
            services.email_service.shutdown(wait=True)

    app = FastAPI(title="Todo Service Backend API", lifespan=lifespan)
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.services = services

    app.add_middleware(
        RequestAuthenticator,
        token_service=services.token_service,
        session_factory=session_factory,
    )

    # Respect X-Forwarded-Proto/Host when behind a proxy (Docker/nginx/etc.)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(auth_router.router)
    app.include_router(todo_router.router)

    @app.get("/")
    def root():
        return {"message": "Todo Service Backend API Ready"}

    return app


app = create_app()
