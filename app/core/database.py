from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
import structlog

from app.core.config import MONGO_URL, MONGO_DB_NAME
from app.courses.models import PaymentStatus

logger = structlog.get_logger(__name__)

client = AsyncIOMotorClient(MONGO_URL)
db = client[MONGO_DB_NAME]


async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return db


# ==================== DATABASE INDEXES ====================

async def create_indexes(database: AsyncIOMotorDatabase):
    """Create MongoDB indexes for data integrity"""
    # Users
    await database.users.create_index("user_id", unique=True)
    await database.users.create_index("email", unique=True)

    # Courses
    await database.courses.create_index("course_id", unique=True)
    await database.courses.create_index("created_at")

    # Enrollments
    await database.enrollments.create_index("enrollment_id", unique=True)
    await database.enrollments.create_index("stripe_payment_id", unique=True)

    # At most one completed enrollment per (user, course)
    await database.enrollments.create_index(
        [("user_id", 1), ("course_id", 1)],
        name="one_completed_per_user_course",
        unique=True,
        partialFilterExpression={"payment_status": PaymentStatus.COMPLETED.value},
    )

    logger.info("indexes_created", database=database.name)
