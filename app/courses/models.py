from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

# ==================== ENUMS ====================

class UserRole(str, Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"

class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

class CheckoutType(str, Enum):
    WEB = "web"
    EMBEDDED = "embedded"

# ==================== USER MODELS ====================

class UserRegister(BaseModel):
    user_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole = UserRole.STUDENT

class UserLogin(BaseModel):
    email: str
    password: str

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    price: float = Field(..., gt=0)
    thumbnail_url: Optional[str] = None

# ==================== PAYMENT MODELS ====================

class CheckoutRequest(BaseModel):
    # Optional so a missing id is answered with 400 rather than a validation error
    course_id: Optional[str] = None

class EnrollmentResponse(BaseModel):
    enrollment_id: str
    course_id: str
    user_id: str
    payment_status: PaymentStatus
    checkout_type: CheckoutType
    stripe_payment_id: str
    enrolled_at: Optional[datetime] = None
