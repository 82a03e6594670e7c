from fastapi import APIRouter, HTTPException, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError
import structlog
from app.auth.auth_utils import hash_password, verify_password, create_access_token
from app.auth.dependencies import get_current_user
from app.core.database import get_db
from app.courses.database import create_user, get_user_by_email
from app.courses.models import UserRegister, UserLogin, UserRole

router = APIRouter(prefix="/api/auth", tags=["Auth"])
logger = structlog.get_logger(__name__)


def _profile(user: dict) -> dict:
    return {
        "user_id": user["user_id"],
        "user_name": user["user_name"],
        "email": user["email"],
        "role": user["role"],
        "profile_photo": user.get("profile_photo"),
    }


@router.post("/register", status_code=201)
async def register_user(data: UserRegister, db: AsyncIOMotorDatabase = Depends(get_db)):
    """Register new user (student or instructor)"""
    if data.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Cannot self-register as admin")

    if await get_user_by_email(db, data.email):
        raise HTTPException(status_code=400, detail="User already exists")

    try:
        user = await create_user(
            db,
            {"user_name": data.user_name, "email": data.email, "role": data.role.value},
            hash_password(data.password)
        )
    except DuplicateKeyError:
        # Lost a race with a concurrent registration
        raise HTTPException(status_code=400, detail="User already exists")

    logger.info("user_registered", user_id=user["user_id"], role=user["role"])

    return {
        "success": True,
        "message": "You registered successfully",
        **_profile(user),
        "token": create_access_token(user["user_id"], user["role"]),
    }


@router.post("/login")
async def login_user(data: UserLogin, db: AsyncIOMotorDatabase = Depends(get_db)):
    user = await get_user_by_email(db, data.email)

    if not user or not verify_password(data.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "success": True,
        **_profile(user),
        "token": create_access_token(user["user_id"], user["role"]),
    }


@router.get("/me")
async def get_me(user: dict = Depends(get_current_user)):
    return {"success": True, "user": user}
