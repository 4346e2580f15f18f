import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.modules.payment.api import router as payment_router
from app.modules.subscription.api import router as subscription_router, plans_router
from app.modules.admin.api import router as admin_router
from app.modules.notification.publisher import event_publisher
from app.core.database import db_manager
from app.core.global_error_handler import register_global_exception_handlers
from app.core.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Subscription billing: payments, refunds, subscription lifecycle and plan catalog.",
    version="1.0.0"
)

# Register global exception handlers
register_global_exception_handlers(app)

@app.on_event("startup")
async def startup_event():
    """Start the background notification/event dispatcher."""
    await event_publisher.start()

@app.on_event("shutdown")
async def shutdown_event():
    """Flush pending events and close database connections on shutdown."""
    await event_publisher.stop()
    await db_manager.close()
    logger.info("Database engine closed.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(payment_router, prefix="/api")
app.include_router(subscription_router, prefix="/api")
app.include_router(plans_router, prefix="/api")
app.include_router(admin_router, prefix="/api")

@app.get("/api/")
async def root():
    return {"message": f"{settings.APP_NAME} is running"}

@app.get("/api/health")
async def health_check():
    return {"status": "ok"}
