"""
FastAPI Application Entry Point

Storefront Checkout Service - Hybrid Architecture
Supports both Mock services (development) and Real APIs (production).

Endpoints:
    - POST /api/checkout/quote: Price a cart
    - POST /api/checkout/address/validate: Validate a shipping address
    - POST /api/checkout/sessions: Open a checkout session
    - GET/DELETE /api/checkout/sessions/{id}: Inspect / close a session
    - POST /api/checkout/sessions/{id}/submit: Place the order
    - POST/DELETE /api/checkout/sessions/{id}/discount: Apply / remove a code
    - POST /api/checkout/sessions/{id}/payment-success|payment-error|close|refresh
    - GET /api/orders, GET /api/orders/{id}: Order history
    - POST /functions/v1/send-order-confirmation: Queue the confirmation e-mail
    - GET /health: System health check

Author: Storefront Team
Version: 1.0.0
"""

import asyncio
import sys
import logging
from datetime import datetime
from functools import lru_cache
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query, Request, Header
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from storefront.checkout.context import SessionContext
from storefront.checkout.orchestrator import CheckoutForm
from storefront.checkout.pricing import build_pricing_snapshot
from storefront.checkout.session import CheckoutSession, CheckoutSessionRegistry
from storefront.checkout.validation import validate_shipping_address
from storefront.core.config import get_settings, setup_logging
from storefront.core.exceptions import (
    CheckoutError,
    CollaboratorError,
    DataIntegrityError,
    SessionNotFoundError,
    SubmissionStateError,
    ValidationError,
)
from storefront.database import init_db, engine
from storefront.schemas import (
    AddressValidationRequest,
    AddressValidationResponse,
    AppliedDiscountResponse,
    ApplyDiscountRequest,
    CheckoutSessionResponse,
    CreateSessionRequest,
    ErrorResponse,
    HealthResponse,
    OrderListResponse,
    OrderResponse,
    PaymentErrorRequest,
    PaymentSuccessResponse,
    PricingResponse,
    QuoteRequest,
    SendConfirmationRequest,
    SendConfirmationResponse,
    SubmitOrderRequest,
    SubmitOrderResponse,
)
from storefront.services import get_auth_service, get_checkout_services, get_notification_service
from storefront.services.auth import bearer_token
from storefront.tasks import send_order_confirmation_email

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache()
def get_session_registry() -> CheckoutSessionRegistry:
    return CheckoutSessionRegistry(get_checkout_services())


async def get_current_session(authorization: Optional[str] = Header(None)) -> SessionContext:
    """The shopper behind the request's bearer token (anonymous if none)."""
    return await get_auth_service().get_session(bearer_token(authorization))


def get_checkout(
    session_id: str,
    registry: CheckoutSessionRegistry = Depends(get_session_registry),
) -> CheckoutSession:
    return registry.get(session_id)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    if settings.use_real_services:
        await init_db()
        logger.info("✅ Database initialized")

        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    services = get_checkout_services()
    logger.info(f"✅ Order Service: {services.orders.provider_name}")
    logger.info(f"✅ Payment Service: {services.payments.provider_name}")
    logger.info(f"✅ Realtime Service: {services.realtime.provider_name}")
    logger.info(f"✅ Auth Service: {get_auth_service().provider_name}")
    get_session_registry().start_sweeper()

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await get_session_registry().close_all()
    await services.outbox.drain(timeout=5)
    await services.outbox.close()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Checkout backend for the restaurant storefront: pricing, order "
        "submission, payment completion and realtime cart reconciliation. "
        "Supports both mock services for development and real APIs for production."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def status_code_for(exc: CheckoutError) -> int:
    if isinstance(exc, SessionNotFoundError):
        return 404
    if isinstance(exc, (ValidationError, DataIntegrityError)):
        return 422
    if isinstance(exc, SubmissionStateError):
        return 409
    if isinstance(exc, CollaboratorError):
        return 502
    return 500


def session_response(checkout: CheckoutSession) -> CheckoutSessionResponse:
    return CheckoutSessionResponse(**checkout.snapshot())


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    registry: CheckoutSessionRegistry = Depends(get_session_registry),
) -> HealthResponse:
    """Verify all system components are operational."""
    services = get_checkout_services()

    # Check database (through the order collaborator)
    db_status = "healthy" if await services.orders.health_check() else "unhealthy"

    # Check Redis (Celery broker)
    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    payment_status = "healthy" if await services.payments.health_check() else "unhealthy"
    notification_status = "healthy" if await get_notification_service().health_check() else "unhealthy"
    realtime_status = "healthy" if await services.realtime.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy"
        for s in [db_status, redis_status, payment_status, notification_status, realtime_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        environment=settings.env_mode.value,
        database=db_status,
        redis=redis_status,
        payment_service=payment_status,
        notification_service=notification_status,
        realtime_service=realtime_status,
        active_sessions=len(registry),
        timestamp=datetime.now(),
    )


# =============================================================================
# STATELESS CHECKOUT HELPERS
# =============================================================================

@app.post(
    "/api/checkout/quote",
    response_model=PricingResponse,
    tags=["Checkout"],
    summary="Price a cart",
)
async def quote(request: QuoteRequest) -> PricingResponse:
    snapshot = build_pricing_snapshot(
        request.lines,
        request.discount_amount,
        get_checkout_services().pricing_policy,
    )
    return PricingResponse(**snapshot.to_dict())


@app.post(
    "/api/checkout/address/validate",
    response_model=AddressValidationResponse,
    tags=["Checkout"],
)
async def validate_address(request: AddressValidationRequest) -> AddressValidationResponse:
    result = validate_shipping_address(request.address, request.require_phone)
    return AddressValidationResponse(**result.to_dict())


# =============================================================================
# CHECKOUT SESSION ENDPOINTS
# =============================================================================

@app.post(
    "/api/checkout/sessions",
    response_model=CheckoutSessionResponse,
    status_code=201,
    tags=["Checkout Sessions"],
    summary="Open a checkout session",
)
async def create_session(
    request: CreateSessionRequest,
    session: SessionContext = Depends(get_current_session),
    registry: CheckoutSessionRegistry = Depends(get_session_registry),
) -> CheckoutSessionResponse:
    checkout = await registry.create(
        session,
        guest_session_id=request.guest_session_id,
        lines=request.lines,
        require_phone=request.require_phone,
    )
    return session_response(checkout)


@app.get(
    "/api/checkout/sessions/{session_id}",
    response_model=CheckoutSessionResponse,
    tags=["Checkout Sessions"],
)
async def get_session(checkout: CheckoutSession = Depends(get_checkout)) -> CheckoutSessionResponse:
    return session_response(checkout)


@app.delete(
    "/api/checkout/sessions/{session_id}",
    status_code=204,
    tags=["Checkout Sessions"],
)
async def close_session(
    session_id: str,
    registry: CheckoutSessionRegistry = Depends(get_session_registry),
) -> None:
    await registry.remove(session_id)


@app.post(
    "/api/checkout/sessions/{session_id}/submit",
    response_model=SubmitOrderResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["Checkout Sessions"],
    summary="Place the order and open a payment intent",
)
async def submit_order(
    request: SubmitOrderRequest,
    checkout: CheckoutSession = Depends(get_checkout),
) -> SubmitOrderResponse:
    intent = await checkout.submit(CheckoutForm(
        address=request.address,
        selected_address_id=request.selected_address_id,
        guest_email=request.guest_email,
        fulfillment_mode=request.fulfillment_mode,
        scheduled_slot=request.scheduled_slot,
        order_note=request.order_note,
        email_updates_opt_in=request.email_updates_opt_in,
        sms_updates_opt_in=request.sms_updates_opt_in,
    ))
    return SubmitOrderResponse(
        success=True,
        order_id=intent.order_id,
        client_secret=intent.client_secret,
        amount=float(intent.amount),
        currency=intent.currency,
    )


@app.post(
    "/api/checkout/sessions/{session_id}/discount",
    response_model=AppliedDiscountResponse,
    tags=["Checkout Sessions"],
)
async def apply_discount(
    request: ApplyDiscountRequest,
    checkout: CheckoutSession = Depends(get_checkout),
) -> AppliedDiscountResponse:
    discount = await checkout.apply_discount_code(request.code)
    return AppliedDiscountResponse(**discount.to_dict())


@app.delete(
    "/api/checkout/sessions/{session_id}/discount",
    response_model=CheckoutSessionResponse,
    tags=["Checkout Sessions"],
)
async def remove_discount(checkout: CheckoutSession = Depends(get_checkout)) -> CheckoutSessionResponse:
    checkout.remove_discount()
    return session_response(checkout)


@app.post(
    "/api/checkout/sessions/{session_id}/payment-success",
    response_model=PaymentSuccessResponse,
    tags=["Checkout Sessions"],
    summary="Payment UI success callback",
)
async def payment_success(checkout: CheckoutSession = Depends(get_checkout)) -> PaymentSuccessResponse:
    accepted = await checkout.payment_succeeded()
    return PaymentSuccessResponse(accepted=accepted, state=checkout.machine.state.value)


@app.post(
    "/api/checkout/sessions/{session_id}/payment-error",
    response_model=CheckoutSessionResponse,
    tags=["Checkout Sessions"],
)
async def payment_error(
    request: PaymentErrorRequest,
    checkout: CheckoutSession = Depends(get_checkout),
) -> CheckoutSessionResponse:
    checkout.payment_failed(request.message)
    return session_response(checkout)


@app.post(
    "/api/checkout/sessions/{session_id}/close",
    response_model=CheckoutSessionResponse,
    tags=["Checkout Sessions"],
    summary="Dismiss the success modal",
)
async def close_modal(checkout: CheckoutSession = Depends(get_checkout)) -> CheckoutSessionResponse:
    checkout.close_modal()
    return session_response(checkout)


@app.post(
    "/api/checkout/sessions/{session_id}/refresh",
    response_model=CheckoutSessionResponse,
    tags=["Checkout Sessions"],
)
async def refresh_cart(checkout: CheckoutSession = Depends(get_checkout)) -> CheckoutSessionResponse:
    await checkout.refresh_cart()
    return session_response(checkout)


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    guest_session_id: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    session: SessionContext = Depends(get_current_session),
) -> OrderListResponse:
    """Orders of the signed-in shopper, or of a guest session."""
    if not session.is_authenticated and not guest_session_id:
        raise HTTPException(status_code=401, detail="Sign in or pass guest_session_id")

    orders = await get_checkout_services().orders.list_orders(
        user_id=session.user_id if session.is_authenticated else None,
        guest_session_id=None if session.is_authenticated else guest_session_id,
        limit=limit,
    )
    return OrderListResponse(
        total=len(orders),
        orders=[OrderResponse(**order.to_dict()) for order in orders],
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    tags=["Orders"],
)
async def get_order(order_id: str) -> OrderResponse:
    """Get a specific order by ID."""
    order = await get_checkout_services().orders.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail=f"Order {order_id} not found")
    return OrderResponse(**order.to_dict())


# =============================================================================
# CONFIRMATION E-MAIL ENDPOINT
# =============================================================================

@app.post(
    "/functions/v1/send-order-confirmation",
    tags=["Notifications"],
    summary="Queue the order confirmation e-mail",
)
async def send_order_confirmation(
    request: SendConfirmationRequest,
    authorization: Optional[str] = Header(None),
) -> JSONResponse:
    """
    Called by the checkout after a successful payment with
    ``{orderId, email}`` and a bearer token (session token or anonymous key).
    """
    if not bearer_token(authorization):
        return JSONResponse(
            status_code=401,
            content=SendConfirmationResponse(success=False, error="Missing authorization").model_dump(
                by_alias=True, exclude_none=True
            ),
        )

    if not request.order_id or not request.email:
        return JSONResponse(
            status_code=400,
            content=SendConfirmationResponse(
                success=False, error="Missing required parameters: orderId and email"
            ).model_dump(by_alias=True, exclude_none=True),
        )

    order = await get_checkout_services().orders.get_order(request.order_id)
    if order is None:
        return JSONResponse(
            status_code=400,
            content=SendConfirmationResponse(success=False, error="Order not found").model_dump(
                by_alias=True, exclude_none=True
            ),
        )

    send_order_confirmation_email.delay({
        "order_id": order.id,
        "email": request.email,
        "customer_name": order.shipping_address.get("full_name") or order.customer_name,
        "order_total": float(order.order_total),
    })
    logger.info(f"Confirmation e-mail queued for order {order.id}")

    return JSONResponse(
        status_code=200,
        content=SendConfirmationResponse(
            success=True,
            message="Order confirmation email sent successfully",
            order_id=order.id,
        ).model_dump(by_alias=True, exclude_none=True),
    )


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(CheckoutError)
async def checkout_exception_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    """Map checkout failures to status codes; the message is safe to show."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"Checkout error on {request.url.path}: {exc.user_message}")

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=exc.user_message,
            detail=type(exc).__name__,
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
