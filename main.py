"""
Barangay Document Request API
FastAPI application entry point
"""
import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.config import Settings, settings as default_settings
from app.core.database import engine, Base
from app.core.exceptions import BarangayServiceError
from app.core.logging_config import configure_logging
from app.api import activity_logs, citizens, documents
# Import models to ensure they're registered with Base.metadata
from app.models import ActivityLog, Citizen, DocumentRequest  # noqa: F401
from app.services.document_workflow import DocumentWorkflowService
from app.services.notification_service import NotificationDispatcher
from app.services.sms_gateway import SmsGateway, build_sms_gateway
from app.services.template_renderer import template_renderer
from app.services.template_store import TemplateStore
from app.utils.file_handling import GeneratedDocumentStorage

logger = logging.getLogger(__name__)


# Create database tables
async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def create_app(settings: Optional[Settings] = None, gateway: Optional[SmsGateway] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use (module settings by default)
        gateway: SMS gateway; built from settings when omitted
    """
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Barangay citizen document requests with template-based document generation",
        version=settings.VERSION,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    dispatcher = NotificationDispatcher(
        gateway or build_sms_gateway(settings),
        timeout=settings.SMS_TIMEOUT_SECONDS,
    )
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.workflow = DocumentWorkflowService(
        template_store=TemplateStore(settings.TEMPLATES_DIR),
        storage=GeneratedDocumentStorage(settings.GENERATED_DIR),
        dispatcher=dispatcher,
        renderer=template_renderer,
        settings=settings,
    )

    @app.exception_handler(BarangayServiceError)
    async def service_error_handler(request: Request, exc: BarangayServiceError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Include routers
    app.include_router(citizens.router, prefix="/citizens", tags=["citizens"])
    app.include_router(documents.router, prefix="/documents", tags=["documents"])
    app.include_router(activity_logs.router, prefix="/activity-logs", tags=["activity-logs"])

    @app.on_event("startup")
    async def startup_event():
        """Initialize database on startup"""
        await init_db()
        logger.info(f"{settings.PROJECT_NAME} {settings.VERSION} started")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Flush queued notifications"""
        await dispatcher.close()

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION
        }

    @app.get("/health")
    async def health():
        """Detailed health check"""
        return {
            "status": "healthy",
            "database": "connected",
            "sms_notifications": {"sent": dispatcher.sent, "failed": dispatcher.failed},
        }

    return app


app = create_app()
