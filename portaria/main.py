"""Main FastAPI application for the front-desk delivery service."""

import base64
import binascii
import sys
from contextlib import asynccontextmanager
from typing import Optional
import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from .config import settings
from .exceptions import AmbiguousPickupCode, StoreUnavailable
from .messaging.dispatcher import NotificationDispatcher
from .messaging.templates import build_test_message
from .models.delivery import Location, Resident
from .storage.delivery_store import DeliveryStore
from .storage.gcs_client import GCSClient
from .storage.local_cache import LocalCache
from .storage.sheets_client import SheetsClient
from .workflows.registration import RegistrationWorkflow
from .workflows.reminders import send_reminders
from .workflows.withdrawal import WithdrawalResult, WithdrawalWorkflow


# Configure logging
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=settings.log_level
)


ERROR_STATUS = {
    "ValidationError": 422,
    "NoDeliverySelected": 409,
    "DeliveryNotFound": 404,
    "AlreadyWithdrawn": 409,
    "AmbiguousPickupCode": 409,
    "StoreUnavailable": 503,
}


class RegisterRequest(BaseModel):
    scope_id: Optional[str] = None
    resident: Resident
    location: Location
    notes: Optional[str] = None
    photo_ref: Optional[str] = None
    # JPEG/PNG bytes, base64-encoded; uploaded to the photo bucket
    photo_base64: Optional[str] = None


class SearchRequest(BaseModel):
    code: str


class ConfirmRequest(BaseModel):
    notes: str = ""


class ReminderRequest(BaseModel):
    scope_id: Optional[str] = None
    min_days: Optional[int] = None


class TestNotificationRequest(BaseModel):
    phone: str
    message: str = "🧪 Teste de notificação"


def create_app(
    store: Optional[DeliveryStore] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    photos: Optional[GCSClient] = None
) -> FastAPI:
    """Build the application. Components not given are built from settings."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown."""
        logger.info("🚀 Starting Portaria delivery service")
        logger.info(f"Environment: {settings.environment}")
        logger.info(f"Log Level: {settings.log_level}")

        http_client = None
        app_store = store
        app_dispatcher = dispatcher
        app_photos = photos

        if app_store is None:
            app_store = DeliveryStore(SheetsClient(), LocalCache())
        if app_dispatcher is None:
            http_client = httpx.AsyncClient(
                timeout=settings.notification_timeout_seconds
            )
            app_dispatcher = NotificationDispatcher.from_settings(http_client)
        if app_photos is None and settings.gcs_bucket_name:
            app_photos = GCSClient()

        app.state.store = app_store
        app.state.dispatcher = app_dispatcher
        app.state.registration = RegistrationWorkflow(
            app_store, app_dispatcher, app_photos
        )
        # One withdrawal workflow per operator session
        app.state.withdrawals = {}

        logger.info("✅ Service initialized successfully")

        yield

        logger.info("Shutting down service...")
        if http_client is not None:
            await http_client.aclose()
        logger.info("Service shut down complete")

    app = FastAPI(
        title="Portaria",
        description="Package delivery tracking for condominium front desks",
        version="1.0.0",
        lifespan=lifespan
    )

    def _workflow(request: Request, session_id: str) -> WithdrawalWorkflow:
        withdrawals = request.app.state.withdrawals
        if session_id not in withdrawals:
            withdrawals[session_id] = WithdrawalWorkflow(
                request.app.state.store, request.app.state.dispatcher
            )
        return withdrawals[session_id]

    def _result_response(result: WithdrawalResult) -> JSONResponse:
        status_code = ERROR_STATUS.get(result.error_type, 400) if result.error else 200
        return JSONResponse(
            status_code=status_code,
            content=result.model_dump(mode="json")
        )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "Portaria",
            "status": "running",
            "version": "1.0.0"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for Cloud Run."""
        return {
            "status": "healthy",
            "environment": settings.environment
        }

    @app.get("/deliveries/pending")
    async def list_pending(request: Request, scope_id: Optional[str] = None):
        """Pending deliveries of a condominium, remote and cache merged."""
        try:
            deliveries = await request.app.state.store.list_pending(scope_id)
        except StoreUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {
            "total": len(deliveries),
            "deliveries": [d.model_dump(mode="json") for d in deliveries]
        }

    @app.post("/deliveries", status_code=201)
    async def register_delivery(request: Request, body: RegisterRequest):
        """Register an incoming package and notify the resident."""
        photo_bytes = None
        if body.photo_base64:
            try:
                photo_bytes = base64.b64decode(body.photo_base64, validate=True)
            except binascii.Error as e:
                raise HTTPException(status_code=422, detail=f"Invalid photo_base64: {e}")

        try:
            delivery, outcome = await request.app.state.registration.register(
                scope_id=body.scope_id,
                resident=body.resident,
                location=body.location,
                notes=body.notes,
                photo_bytes=photo_bytes,
                photo_ref=body.photo_ref
            )
        except StoreUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))
        except AmbiguousPickupCode as e:
            raise HTTPException(status_code=409, detail=str(e))

        return {
            "delivery": delivery.model_dump(mode="json"),
            "notification": outcome.model_dump(mode="json")
        }

    @app.post("/withdrawals/{session_id}/search")
    async def search_withdrawal(request: Request, session_id: str, body: SearchRequest):
        """Look a delivery up by pickup code for this operator session."""
        result = await _workflow(request, session_id).submit_code(body.code)
        return _result_response(result)

    @app.post("/withdrawals/{session_id}/confirm")
    async def confirm_withdrawal(request: Request, session_id: str, body: ConfirmRequest):
        """Confirm pickup of the delivery found by the last search."""
        result = await _workflow(request, session_id).confirm(body.notes)
        return _result_response(result)

    @app.post("/reminders")
    async def reminders(request: Request, body: ReminderRequest):
        """Send reminders for packages pending too long."""
        try:
            results = await send_reminders(
                request.app.state.store,
                request.app.state.dispatcher,
                scope_id=body.scope_id,
                min_days=body.min_days
            )
        except StoreUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))

        return {
            "total": len(results),
            "sent": sum(1 for _, outcome in results if outcome.success),
            "results": [
                {
                    "code": delivery.pickup_code,
                    "success": outcome.success,
                    "channel": outcome.channel
                }
                for delivery, outcome in results
            ]
        }

    @app.post("/notifications/test")
    async def test_notification(request: Request, body: TestNotificationRequest):
        """Send a test message through the channel chain (for debugging)."""
        outcome = await request.app.state.dispatcher.dispatch(
            build_test_message(body.phone, body.message)
        )
        return outcome.model_dump(mode="json")

    return app


# Create FastAPI app
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "portaria.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=not settings.is_production
    )
