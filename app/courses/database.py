from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from datetime import datetime
from typing import List, Optional
import uuid
from app.courses.models import PaymentStatus, CheckoutType

# ==================== SERIALIZATION ====================

def serialize_mongo(doc: Optional[dict]) -> Optional[dict]:
    """Drop ObjectId and secrets so the document is JSON-safe"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop("_id", None)
    doc.pop("password_hash", None)
    return doc

def serialize_many(docs: List[dict]) -> List[dict]:
    return [serialize_mongo(doc) for doc in docs]

# ==================== USER CRUD ====================

async def create_user(db: AsyncIOMotorDatabase, user_data: dict, password_hash: str) -> dict:
    user = {
        "user_id": f"USR_{uuid.uuid4().hex[:12].upper()}",
        "user_name": user_data["user_name"],
        "email": user_data["email"].lower(),
        "password_hash": password_hash,
        "role": user_data["role"],
        "profile_photo": None,
        "enrolled_courses": [],
        "created_at": datetime.utcnow(),
    }
    await db.users.insert_one(user)
    return user

async def get_user(db: AsyncIOMotorDatabase, user_id: str) -> Optional[dict]:
    return await db.users.find_one({"user_id": user_id})

async def get_user_by_email(db: AsyncIOMotorDatabase, email: str) -> Optional[dict]:
    return await db.users.find_one({"email": email.lower()})

# ==================== COURSE CRUD ====================

async def create_course(db: AsyncIOMotorDatabase, course_data: dict, instructor_id: str) -> dict:
    """Create new course owned by the calling instructor"""
    course = {
        "course_id": f"COURSE_{uuid.uuid4().hex[:12].upper()}",
        "title": course_data["title"],
        "description": course_data.get("description", ""),
        "price": course_data["price"],
        "thumbnail_url": course_data.get("thumbnail_url"),
        "instructor_id": instructor_id,
        "enrolled_students": [],
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    await db.courses.insert_one(course)
    return course

async def get_course(db: AsyncIOMotorDatabase, course_id: str) -> Optional[dict]:
    """Get course by ID"""
    return await db.courses.find_one({"course_id": course_id})

async def list_courses(db: AsyncIOMotorDatabase, skip: int = 0, limit: int = 20) -> List[dict]:
    cursor = db.courses.find({}).sort("created_at", -1).skip(skip).limit(limit)
    return await cursor.to_list(length=limit)

async def add_course_membership(db: AsyncIOMotorDatabase, user_id: str, course_id: str):
    """Cross-reference user and course membership sets"""
    await db.courses.update_one(
        {"course_id": course_id},
        {"$addToSet": {"enrolled_students": user_id}}
    )
    await db.users.update_one(
        {"user_id": user_id},
        {"$addToSet": {"enrolled_courses": course_id}}
    )

# ==================== ENROLLMENT CRUD ====================

async def get_completed_enrollment(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> Optional[dict]:
    return await db.enrollments.find_one({
        "user_id": user_id,
        "course_id": course_id,
        "payment_status": PaymentStatus.COMPLETED.value
    })

async def create_pending_enrollment(
    db: AsyncIOMotorDatabase,
    enrollment_id: str,
    user_id: str,
    course_id: str,
    stripe_payment_id: str,
    checkout_type: CheckoutType,
    amount: int,
    currency: str
) -> dict:
    enrollment = {
        "enrollment_id": enrollment_id,
        "user_id": user_id,
        "course_id": course_id,
        "payment_status": PaymentStatus.PENDING.value,
        "stripe_payment_id": stripe_payment_id,
        "checkout_type": checkout_type.value,
        "amount": amount,
        "currency": currency,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
        "enrolled_at": None,
    }
    await db.enrollments.insert_one(enrollment)
    return enrollment

async def get_enrollment_by_payment(db: AsyncIOMotorDatabase, stripe_payment_id: str) -> Optional[dict]:
    return await db.enrollments.find_one({"stripe_payment_id": stripe_payment_id})

async def get_enrollment_for_user(db: AsyncIOMotorDatabase, stripe_payment_id: str, user_id: str) -> Optional[dict]:
    return await db.enrollments.find_one({
        "stripe_payment_id": stripe_payment_id,
        "user_id": user_id
    })

async def complete_enrollment(db: AsyncIOMotorDatabase, stripe_payment_id: str) -> Optional[dict]:
    """
    Compare-and-set transition to COMPLETED.
    Returns None when no enrollment matched or it was already completed.
    """
    now = datetime.utcnow()
    return await db.enrollments.find_one_and_update(
        {
            "stripe_payment_id": stripe_payment_id,
            "payment_status": {"$ne": PaymentStatus.COMPLETED.value}
        },
        {"$set": {
            "payment_status": PaymentStatus.COMPLETED.value,
            "enrolled_at": now,
            "updated_at": now
        }},
        return_document=ReturnDocument.AFTER
    )

async def fail_enrollment(db: AsyncIOMotorDatabase, stripe_payment_id: str, reason: Optional[str] = None) -> Optional[dict]:
    """Only PENDING enrollments can fail"""
    return await db.enrollments.find_one_and_update(
        {
            "stripe_payment_id": stripe_payment_id,
            "payment_status": PaymentStatus.PENDING.value
        },
        {"$set": {
            "payment_status": PaymentStatus.FAILED.value,
            "failure_reason": reason,
            "updated_at": datetime.utcnow()
        }},
        return_document=ReturnDocument.AFTER
    )

async def is_enrolled(db: AsyncIOMotorDatabase, user_id: str, course_id: str) -> bool:
    return await get_completed_enrollment(db, user_id, course_id) is not None

async def get_user_enrollments(db: AsyncIOMotorDatabase, user_id: str) -> List[dict]:
    """Get completed enrollments for user, newest first"""
    cursor = db.enrollments.find({
        "user_id": user_id,
        "payment_status": PaymentStatus.COMPLETED.value
    }).sort("enrolled_at", -1)
    return await cursor.to_list(length=100)
