"""
Stripe course checkout
File: app/payments/payment_router.py

Flow:
1. Client starts checkout (web redirect or embedded payment sheet)
   -> PENDING enrollment keyed by the Stripe session / intent id
2. Stripe calls /webhook -> enrollment COMPLETED (the only state transition)
3. Client lands on the success page -> /verify reports current state
"""

import uuid
from typing import Optional
from fastapi import APIRouter, HTTPException, Request, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
import structlog
from app.auth.dependencies import get_current_user
from app.core.database import get_db
from app.courses.course_router import course_summary
from app.courses.database import (
    get_course, get_completed_enrollment, create_pending_enrollment,
    add_course_membership, get_enrollment_for_user, is_enrolled
)
from app.courses.models import CheckoutRequest, CheckoutType, EnrollmentResponse, PaymentStatus
from app.payments.gateway import (
    StripeGateway, PaymentProviderError, WebhookSignatureError,
    get_payment_gateway, to_minor_units
)
from app.payments.reconciler import reconcile_event

router = APIRouter(prefix="/api/payments", tags=["Payment"])
logger = structlog.get_logger(__name__)


# ==================== HELPER FUNCTIONS ====================

async def start_checkout(
    db: AsyncIOMotorDatabase,
    gateway: StripeGateway,
    user: dict,
    course_id: Optional[str],
    checkout_type: CheckoutType
):
    """
    Shared checkout steps for both client types.
    Returns (provider handle, enrollment document).
    """
    if not course_id:
        raise HTTPException(status_code=400, detail="Course ID is required")

    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    if await get_completed_enrollment(db, user["user_id"], course_id):
        raise HTTPException(status_code=400, detail="You are already enrolled in this course")

    enrollment_id = f"ENR_{uuid.uuid4().hex[:12].upper()}"
    metadata = {
        "user_id": user["user_id"],
        "course_id": course_id,
        "enrollment_id": enrollment_id
    }

    try:
        if checkout_type == CheckoutType.WEB:
            handle = await gateway.create_checkout_session(course=course, user=user, metadata=metadata)
        else:
            handle = await gateway.create_payment_intent(course=course, user=user, metadata=metadata)
    except PaymentProviderError as e:
        action = "checkout session" if checkout_type == CheckoutType.WEB else "payment intent"
        raise HTTPException(
            status_code=500,
            detail={"message": f"Failed to create {action}", "error": str(e)}
        )

    enrollment = await create_pending_enrollment(
        db,
        enrollment_id=enrollment_id,
        user_id=user["user_id"],
        course_id=course_id,
        stripe_payment_id=handle.id,
        checkout_type=checkout_type,
        amount=to_minor_units(course["price"]),
        currency=gateway.currency
    )

    # Optimistic cross references, read paths check payment status
    await add_course_membership(db, user["user_id"], course_id)

    logger.info(
        "checkout_created",
        checkout_type=checkout_type.value,
        enrollment_id=enrollment_id,
        user_id=user["user_id"],
        course_id=course_id,
        stripe_payment_id=handle.id
    )
    return handle, enrollment


# ==================== API ENDPOINTS ====================

@router.post("/web-checkout")
async def create_checkout_session_web(
    data: CheckoutRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    user: dict = Depends(get_current_user)
):
    """Hosted Stripe Checkout for browser clients"""
    try:
        session, enrollment = await start_checkout(db, gateway, user, data.course_id, CheckoutType.WEB)
        return {
            "success": True,
            "message": "Checkout session created",
            "session_id": session.id,
            "checkout_url": session.url,
            "enrollment_id": enrollment["enrollment_id"]
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("checkout_error", checkout_type=CheckoutType.WEB.value)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/embedded-checkout")
async def create_payment_intent_embedded(
    data: CheckoutRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    user: dict = Depends(get_current_user)
):
    """Payment intent for in-app payment sheets (mobile clients)"""
    try:
        intent, enrollment = await start_checkout(db, gateway, user, data.course_id, CheckoutType.EMBEDDED)
        return {
            "success": True,
            "message": "Payment Intent created",
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "enrollment_id": enrollment["enrollment_id"]
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("checkout_error", checkout_type=CheckoutType.EMBEDDED.value)
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway)
):
    """
    Stripe webhook handler - NO AUTH (Stripe signature verification)

    Signature is checked against the raw body before anything is parsed.
    Once verified the event is always acknowledged, processing errors are
    only logged so Stripe does not keep redelivering.
    """
    payload = await request.body()

    try:
        event = gateway.verify_webhook(payload, request.headers.get("stripe-signature"))
    except WebhookSignatureError:
        raise HTTPException(status_code=400, detail="Webhook error")

    try:
        outcome = await reconcile_event(db, event)
    except Exception:
        logger.exception("webhook_processing_error", event_id=event.get("id"), event_type=event.get("type"))
        return {"received": True}

    return {"received": True, "outcome": outcome.value}


@router.get("/verify")
async def verify_payment(
    session_id: Optional[str] = Query(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    user: dict = Depends(get_current_user)
):
    """
    Confirm a checkout session after the success redirect.
    Read only: when the webhook has not landed yet the client should poll again.
    """
    if not session_id:
        raise HTTPException(status_code=400, detail="Session ID is required")

    try:
        session = await gateway.retrieve_checkout_session(session_id)
    except PaymentProviderError as e:
        raise HTTPException(
            status_code=500,
            detail={"message": "Failed to verify payment", "error": str(e)}
        )

    if getattr(session, "payment_status", None) != "paid":
        raise HTTPException(status_code=400, detail="Payment not completed")

    enrollment = await get_enrollment_for_user(db, session_id, user["user_id"])
    if not enrollment:
        raise HTTPException(status_code=404, detail="Enrollment not found")

    if enrollment["payment_status"] != PaymentStatus.COMPLETED.value:
        raise HTTPException(
            status_code=400,
            detail={"message": "Payment not completed", "payment_status": enrollment["payment_status"]}
        )

    course = await get_course(db, enrollment["course_id"])
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    return {
        "success": True,
        "enrollment": EnrollmentResponse(**enrollment).model_dump(mode="json"),
        "course": course_summary(course)
    }


@router.get("/check/{course_id}")
async def check_enrollment(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Is the caller enrolled (paid) in this course"""
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    return {
        "course_id": course_id,
        "enrolled": await is_enrolled(db, user["user_id"], course_id)
    }
