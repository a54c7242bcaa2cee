"""FastAPI routes for the Storefront: checkout, webhooks, orders and connect onboarding."""

from fastapi import APIRouter, Body, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain
from pydantic import ValidationError as RequestValidationError

from storefront.api.schemas import (
    CheckoutErrorResponse,
    CheckoutResponse,
    ConfigureGatewayRequest,
    ConfigureProviderRequest,
    GatewayConfigResponse,
    OnboardingLinkRequest,
    OnboardingLinkResponse,
    ProviderConfigResponse,
    StatusResponse,
)
from storefront.checkout.errors import INVALID_REQUEST, CheckoutError
from storefront.checkout.orchestrator import create_checkout_intent
from storefront.checkout.request import CheckoutRequest
from storefront.config import is_production
from storefront.connect.fees import load_connect_account
from storefront.connect.onboarding import create_onboarding_link
from storefront.fulfillment.provider import get_provider
from storefront.fulfillment.provider.fake_adapter import FakeFulfillmentProvider
from storefront.fulfillment.webhook import (
    InvalidFulfillmentSignature,
    MalformedFulfillmentPayload,
    handle_fulfillment_webhook,
)
from storefront.order.dashboard import store_dashboard
from storefront.order.order import Order
from storefront.order.queries import order_to_dict, orders_for_buyer, orders_for_selling_group
from storefront.payment.gateway import get_gateway
from storefront.payment.gateway.fake_adapter import FakeGateway
from storefront.payment.gateway.port import WebhookPayloadError, WebhookSignatureError
from storefront.payment.webhook import handle_payment_event
from storefront.utils.logging import bind_order_context, clear_context

store_router = APIRouter(prefix="/store", tags=["store"])


def _error_response(error: CheckoutError) -> JSONResponse:
    return JSONResponse(status_code=error.status, content=error.as_dict())


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@store_router.post(
    "/checkout",
    status_code=201,
    response_model=CheckoutResponse,
    responses={400: {"model": CheckoutErrorResponse}, 409: {"model": CheckoutErrorResponse}},
)
async def checkout(payload: dict = Body(...)):
    """Price the cart, persist the order and authorize payment."""
    try:
        request = CheckoutRequest.model_validate(payload)
    except RequestValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        return _error_response(CheckoutError(400, INVALID_REQUEST, f"{field}: {first.get('msg')}"))

    bind_order_context(selling_group_id=request.selling_group_id)
    try:
        result = create_checkout_intent(request)
    except CheckoutError as exc:
        return _error_response(exc)
    finally:
        clear_context()

    return CheckoutResponse(
        order_id=result.order_id,
        client_secret=result.client_secret,
        payment_intent_id=result.payment_intent_id,
        confirmation_code=result.confirmation_code,
        subtotal_cents=result.subtotal_cents,
        shipping_cents=result.shipping_cents,
        tax_cents=result.tax_cents,
        fee_cents=result.fee_cents,
        total_cents=result.total_cents,
        currency=result.currency,
        tax_calculation_id=result.tax_calculation_id,
        shipping_rates=result.shipping_rates,
    )


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
@store_router.post("/webhooks/payments", response_model=StatusResponse)
async def payment_webhook(request: Request, stripe_signature: str = Header(default="")) -> StatusResponse:
    """Reconcile a payment processor event."""
    raw = await request.body()
    try:
        event = get_gateway().construct_event(raw, stripe_signature)
    except WebhookPayloadError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload") from None
    except WebhookSignatureError:
        raise HTTPException(status_code=401, detail="Invalid webhook signature") from None

    bind_order_context(event_id=event.get("id"), event_type=event.get("type"))
    try:
        return StatusResponse(status=handle_payment_event(event))
    finally:
        clear_context()


@store_router.post("/webhooks/fulfillment", response_model=StatusResponse)
async def fulfillment_webhook(request: Request) -> StatusResponse:
    """Reconcile a fulfillment provider event."""
    raw = await request.body()
    try:
        status = handle_fulfillment_webhook(raw, request.headers)
    except InvalidFulfillmentSignature:
        raise HTTPException(status_code=401, detail="Invalid fulfillment webhook signature") from None
    except MalformedFulfillmentPayload:
        raise HTTPException(status_code=400, detail="Invalid fulfillment webhook payload") from None
    return StatusResponse(status=status)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@store_router.get("/orders/{order_id}")
async def get_order(order_id: str) -> dict:
    order = current_domain.repository_for(Order).get(order_id)
    return order_to_dict(order)


@store_router.get("/orders")
async def list_orders(buyer_id: str | None = None, selling_group_id: str | None = None) -> dict:
    """Orders for a buyer (optionally within one selling group) or for a selling group."""
    if buyer_id:
        orders = orders_for_buyer(buyer_id)
        if selling_group_id:
            orders = [o for o in orders if str(o.selling_group_id) == selling_group_id]
    elif selling_group_id:
        orders = orders_for_selling_group(selling_group_id)
    else:
        raise HTTPException(status_code=400, detail="buyer_id or selling_group_id is required")
    return {"orders": [order_to_dict(order) for order in orders]}


@store_router.get("/dashboard/{selling_group_id}")
async def dashboard(selling_group_id: str) -> dict:
    return store_dashboard(selling_group_id)


# ---------------------------------------------------------------------------
# Connect onboarding
# ---------------------------------------------------------------------------
@store_router.post("/connect/{selling_group_id}/onboarding-link", response_model=OnboardingLinkResponse)
async def onboarding_link(selling_group_id: str, body: OnboardingLinkRequest) -> OnboardingLinkResponse:
    link = create_onboarding_link(
        selling_group_id,
        return_url=body.return_url,
        refresh_url=body.refresh_url,
        email=body.email,
    )
    return OnboardingLinkResponse(**link)


@store_router.get("/connect/{selling_group_id}")
async def connect_status(selling_group_id: str, refresh: bool = True) -> dict:
    account = load_connect_account(selling_group_id, refresh=refresh)
    if account is None:
        raise HTTPException(status_code=404, detail="No payment account for this selling group")
    return account.to_dict()


# ---------------------------------------------------------------------------
# Fake adapter configuration (non-production only)
# ---------------------------------------------------------------------------
@store_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if is_production():
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        unavailable=body.unavailable,
    )
    gateway.configure_tax(tax_cents=body.tax_cents, should_fail=body.tax_should_fail)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
        unavailable=gateway.unavailable,
        tax_cents=gateway.tax_cents,
        tax_should_fail=gateway.tax_should_fail,
    )


@store_router.post("/fulfillment-provider/configure", response_model=ProviderConfigResponse)
async def configure_provider(body: ConfigureProviderRequest) -> ProviderConfigResponse:
    """Configure the FakeFulfillmentProvider behavior (non-production only)."""
    if is_production():
        raise HTTPException(status_code=403, detail="Provider configuration not available in production")

    provider = get_provider()
    if not isinstance(provider, FakeFulfillmentProvider):
        raise HTTPException(status_code=400, detail="Provider configuration only available for FakeFulfillmentProvider")

    provider.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return ProviderConfigResponse(
        provider=type(provider).__name__,
        should_succeed=provider.should_succeed,
        failure_reason=provider.failure_reason,
    )
