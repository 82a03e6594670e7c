from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from app.auth.dependencies import get_current_user
from app.core.database import get_db
from app.courses.course_router import course_summary
from app.courses.database import get_user_enrollments, get_course

router = APIRouter(prefix="/api/enrollments", tags=["Enrollments"])


@router.get("/my-courses")
async def get_my_courses(
    db: AsyncIOMotorDatabase = Depends(get_db),
    user: dict = Depends(get_current_user)
):
    """Get all paid-for courses for user"""
    enrollments = await get_user_enrollments(db, user["user_id"])

    # Enrich with course data
    result = []
    for enr in enrollments:
        course = await get_course(db, enr["course_id"])
        if course:
            result.append({
                "enrollment_id": enr["enrollment_id"],
                "course": course_summary(course),
                "enrolled_at": enr["enrolled_at"]
            })

    return {
        "enrollments": result,
        "count": len(result)
    }
