"""
Event Registration System - FastAPI Backend
Main application entry point
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
import uvicorn

from app.core.config import settings
from app.core.db import engine, Base
from app.core.errors import RegistrationError
from app.api import routes_admin, routes_payment, routes_public
from app.services.blob_store import BlobStore, FirebaseBlobStore, LocalBlobStore
from app.services.firebase_client import get_storage_bucket
from app.services.notification_service import NotificationService, build_notification_sender
from app.services.qr_service import QRService
from app.services.repositories import use_firestore
from app.utils.responses import registration_error_handler

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

def build_blob_store() -> BlobStore:
    if settings.BLOB_BACKEND == "firebase":
        return FirebaseBlobStore(get_storage_bucket())
    return LocalBlobStore()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    if not use_firestore():
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")

    app.state.notifier = build_notification_sender()
    app.state.messages = NotificationService()
    app.state.qr_service = QRService()
    app.state.blob_store = build_blob_store()
    logger.info(f"Proof uploads stored via {settings.BLOB_BACKEND} backend")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Event Registration System",
    description="Event registration, UPI payment proof verification and QR tickets",
    version="1.0.0",
    lifespan=lifespan
)

app.add_exception_handler(RegistrationError, registration_error_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Locally stored payment screenshots
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_payment.router, prefix="/payments", tags=["payments"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])

# Note: Run this ASGI app directly with Uvicorn or Hypercorn. For Gunicorn,
# use `uvicorn.workers.UvicornWorker` instead of wrapping the app.

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
