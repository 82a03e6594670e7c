from fastapi import Depends, HTTPException
from motor.motor_asyncio import AsyncIOMotorDatabase
from app.auth.auth_utils import verify_access_token
from app.core.database import get_db
from app.courses.database import get_user, serialize_mongo
from app.courses.models import UserRole

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_current_user(
    token_payload: dict = Depends(verify_access_token),
    db: AsyncIOMotorDatabase = Depends(get_db)
) -> dict:
    """
    Resolve the bearer token to the stored user record.
    The token alone is not trusted for users that were removed since issue.
    """
    user = await get_user(db, token_payload["sub"])
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")
    return serialize_mongo(user)


def require_roles(*roles: UserRole):
    """Restrict a route to the given roles"""
    allowed = {role.value for role in roles}

    async def checker(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in allowed:
            raise HTTPException(status_code=403, detail="Not authorized for this action")
        return user

    return checker
