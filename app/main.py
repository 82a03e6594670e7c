from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog
from app.core.config import (
    CORS_ORIGINS, VERSION, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET,
    PAYMENT_CURRENCY, CLIENT_DOMAIN
)
from app.core.database import db, create_indexes
from app.core.logging_config import setup_logging
from app.auth.auth_utils import require_jwt_secret
from app.auth.router import router as auth_router
from app.courses.course_router import router as course_router
from app.courses.enrollment_router import router as enrollment_router
from app.payments.gateway import StripeGateway
from app.payments.payment_router import router as payment_router

setup_logging()
logger = structlog.get_logger(__name__)

require_jwt_secret()

app = FastAPI(title="Course Payments API")

# Single provider client, injected through get_payment_gateway
app.state.payment_gateway = StripeGateway(
    api_key=STRIPE_SECRET_KEY,
    webhook_secret=STRIPE_WEBHOOK_SECRET,
    currency=PAYMENT_CURRENCY,
    client_domain=CLIENT_DOMAIN,
)


@app.on_event("startup")
async def startup_event():
    await create_indexes(db)
    logger.info("startup_complete", version=VERSION or "unknown")


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials="*" not in CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ROUTER REGISTRATION ====================
app.include_router(auth_router)
app.include_router(course_router)
app.include_router(enrollment_router)
app.include_router(payment_router)
# ============================================================


@app.get("/version")
def get_version():
    return {"version": VERSION or "unknown", "status": "stable"}


@app.get("/health")
def health():
    return {"status": "ok"}
