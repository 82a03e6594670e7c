from fastapi import APIRouter, HTTPException, Depends, Query
from motor.motor_asyncio import AsyncIOMotorDatabase
import structlog
from app.auth.dependencies import require_roles
from app.core.database import get_db
from app.courses.database import create_course, get_course, list_courses, serialize_mongo, serialize_many
from app.courses.models import CourseCreate, UserRole

router = APIRouter(prefix="/api/courses", tags=["Course Management"])
logger = structlog.get_logger(__name__)


def course_summary(course: dict) -> dict:
    return {
        "course_id": course["course_id"],
        "title": course["title"],
        "description": course.get("description", ""),
        "price": course["price"],
        "thumbnail_url": course.get("thumbnail_url"),
        "instructor_id": course.get("instructor_id"),
    }


@router.get("")
async def list_courses_endpoint(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    courses = await list_courses(db, skip=skip, limit=limit)
    return {
        "courses": [course_summary(c) for c in courses],
        "count": len(courses),
        "skip": skip,
        "limit": limit
    }


@router.get("/{course_id}")
async def get_course_endpoint(course_id: str, db: AsyncIOMotorDatabase = Depends(get_db)):
    course = await get_course(db, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return {"course": serialize_mongo(course)}


@router.post("", status_code=201)
async def create_course_endpoint(
    data: CourseCreate,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(require_roles(UserRole.INSTRUCTOR, UserRole.ADMIN))
):
    """Create course (instructors and admins only)"""
    course = await create_course(db, data.model_dump(), user["user_id"])
    logger.info("course_created", course_id=course["course_id"], instructor_id=user["user_id"])
    return {
        "success": True,
        "course_id": course["course_id"],
        "course": serialize_mongo(course)
    }
