"""
Stripe gateway for course checkout.

One instance is built at startup from configuration and injected into the
payment routes; nothing here reads globals or sets ``stripe.api_key``.
The SDK is blocking, so every network call runs in the threadpool.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import stripe
import structlog
from fastapi import Request
from starlette.concurrency import run_in_threadpool

logger = structlog.get_logger(__name__)


class PaymentProviderError(Exception):
    """Raised when a Stripe API call fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class WebhookSignatureError(Exception):
    """Raised when a webhook payload cannot be verified."""


def to_minor_units(price: Any) -> int:
    """Convert a decimal price to the provider's smallest currency unit."""
    amount = Decimal(str(price)) * 100
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway:
    """Thin wrapper over the Stripe SDK calls used by the checkout flow."""

    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str],
        currency: str = "egp",
        client_domain: str = "http://localhost:3000",
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()
        self.client_domain = client_domain.rstrip("/")

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await run_in_threadpool(func, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.error(
                "stripe_api_error",
                operation=operation,
                error_code=getattr(e, "code", None),
                error_message=message,
            )
            raise PaymentProviderError(message, original_error=e)

    async def create_checkout_session(
        self,
        *,
        course: dict,
        user: dict,
        metadata: Dict[str, str],
    ):
        """Hosted checkout page for the web redirect flow."""
        return await self._call(
            "checkout_session_create",
            stripe.checkout.Session.create,
            mode="payment",
            payment_method_types=["card"],
            line_items=[
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": course["title"],
                            "description": f"Access to {course['title']} course",
                        },
                        "unit_amount": to_minor_units(course["price"]),
                    },
                    "quantity": 1,
                }
            ],
            success_url=f"{self.client_domain}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{self.client_domain}/payment/cancel",
            customer_email=user.get("email"),
            client_reference_id=user["user_id"],
            metadata=metadata,
        )

    async def create_payment_intent(
        self,
        *,
        course: dict,
        user: dict,
        metadata: Dict[str, str],
    ):
        """Payment intent for the embedded payment-sheet flow."""
        return await self._call(
            "payment_intent_create",
            stripe.PaymentIntent.create,
            amount=to_minor_units(course["price"]),
            currency=self.currency,
            payment_method_types=["card"],
            description=f"Access to {course['title']} course",
            receipt_email=user.get("email"),
            metadata=metadata,
        )

    async def retrieve_checkout_session(self, session_id: str):
        return await self._call(
            "checkout_session_retrieve",
            stripe.checkout.Session.retrieve,
            session_id,
        )

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Check the Stripe-Signature header against the exact request bytes,
        then parse the event. Nothing is parsed before the check passes.
        """
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")

        try:
            event = stripe.Webhook.construct_event(
                payload=payload,
                sig_header=signature,
                secret=self.webhook_secret,
            )
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("webhook_signature_verification_failed", error=str(e))
            raise WebhookSignatureError(str(e))

        logger.info("webhook_signature_verified", event_id=event.id, event_type=event.type)
        return event.to_dict()


def get_payment_gateway(request: Request) -> StripeGateway:
    """Gateway dependency"""
    return request.app.state.payment_gateway
