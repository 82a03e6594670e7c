"""
Webhook reconciliation: apply verified Stripe events to enrollment state.

Each payment handle has exactly one completion event:
checkout sessions complete on ``checkout.session.completed`` (or its
delayed-payment form), payment intents from the embedded flow complete on
``payment_intent.succeeded``. Intents created behind a checkout session carry
no course metadata and are ignored, so no payment is reconciled twice.
"""
from enum import Enum

import structlog
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from app.courses.database import complete_enrollment, fail_enrollment, get_enrollment_by_payment
from app.courses.models import PaymentStatus

logger = structlog.get_logger(__name__)


class Outcome(str, Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


SESSION_COMPLETED_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
SESSION_FAILED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}
INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"


async def mark_completed(db: AsyncIOMotorDatabase, stripe_payment_id: str, metadata: dict) -> Outcome:
    try:
        enrollment = await complete_enrollment(db, stripe_payment_id)
    except DuplicateKeyError:
        # Another attempt for the same (user, course) already completed
        logger.error(
            "duplicate_completed_enrollment",
            stripe_payment_id=stripe_payment_id,
            user_id=metadata.get("user_id"),
            course_id=metadata.get("course_id"),
        )
        return Outcome.DUPLICATE

    if enrollment:
        logger.info(
            "enrollment_completed",
            enrollment_id=enrollment["enrollment_id"],
            user_id=enrollment["user_id"],
            course_id=enrollment["course_id"],
            stripe_payment_id=stripe_payment_id,
        )
        return Outcome.COMPLETED

    existing = await get_enrollment_by_payment(db, stripe_payment_id)
    if existing and existing["payment_status"] == PaymentStatus.COMPLETED.value:
        logger.info("enrollment_already_completed", stripe_payment_id=stripe_payment_id)
        return Outcome.ALREADY_COMPLETED

    logger.warning(
        "enrollment_not_found",
        stripe_payment_id=stripe_payment_id,
        user_id=metadata.get("user_id"),
        course_id=metadata.get("course_id"),
    )
    return Outcome.NOT_FOUND


async def mark_failed(db: AsyncIOMotorDatabase, stripe_payment_id: str, reason) -> Outcome:
    enrollment = await fail_enrollment(db, stripe_payment_id, reason)
    if not enrollment:
        logger.info("enrollment_not_pending", stripe_payment_id=stripe_payment_id)
        return Outcome.IGNORED

    logger.info(
        "enrollment_failed",
        enrollment_id=enrollment["enrollment_id"],
        stripe_payment_id=stripe_payment_id,
        reason=reason,
    )
    return Outcome.FAILED


async def reconcile_event(db: AsyncIOMotorDatabase, event: dict) -> Outcome:
    """Apply one verified Stripe event. Safe to call again for the same event."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    metadata = obj.get("metadata") or {}
    stripe_payment_id = obj.get("id")

    if not stripe_payment_id:
        logger.warning("webhook_event_without_object", event_id=event.get("id"), event_type=event_type)
        return Outcome.IGNORED

    if event_type in SESSION_COMPLETED_EVENTS:
        if obj.get("payment_status") != "paid":
            # Delayed payment methods finish later with async_payment_succeeded
            logger.info("checkout_session_awaiting_payment", stripe_payment_id=stripe_payment_id)
            return Outcome.IGNORED
        return await mark_completed(db, stripe_payment_id, metadata)

    if event_type in SESSION_FAILED_EVENTS:
        return await mark_failed(db, stripe_payment_id, event_type)

    if event_type in (INTENT_SUCCEEDED, INTENT_FAILED):
        if not metadata.get("course_id"):
            return Outcome.IGNORED
        if event_type == INTENT_SUCCEEDED:
            return await mark_completed(db, stripe_payment_id, metadata)
        error = obj.get("last_payment_error") or {}
        return await mark_failed(db, stripe_payment_id, error.get("message") or event_type)

    logger.debug("webhook_event_unhandled", event_id=event.get("id"), event_type=event_type)
    return Outcome.IGNORED
