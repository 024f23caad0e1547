"""
Harvest Supply-Chain Backend - Main Application
Crop batch lifecycle, warehouse receiving and transport scheduling API
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone
import logging
import uvicorn

from config import settings
from database import init_db, test_connection
from routes import (
    admin_router, auth_router, field_agent_router, notifications_router,
    procurement_router, transport_coordinator_router, transport_driver_router,
    warehouse_router,
)
from utils.errors import SupplyChainError
from utils.request_body import format_validation_error

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Supply-Chain Backend Starting...")

    try:
        logger.info("📊 Initializing database...")
        init_db()

        logger.info("🔍 Testing database connection...")
        if test_connection():
            logger.info("✅ Database connection successful")
        else:
            logger.error("❌ Database connection failed")

        logger.info("✅ Backend startup completed successfully")

    except Exception as e:
        logger.error(f"❌ Startup error: {str(e)}")
        raise e

    yield

    # Shutdown
    logger.info("🛑 Supply-Chain Backend Shutting Down...")

app = FastAPI(
    title="Harvest Supply-Chain API",
    description="Farm-to-warehouse crop batch tracking with role-scoped actions",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": None},
    )

@app.exception_handler(SupplyChainError)
async def supply_chain_error_handler(request: Request, exc: SupplyChainError):
    if exc.status_code >= 500:
        logger.error(f"❌ {type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"⚠️ {type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.message)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(400, format_validation_error(exc))

@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"❌ Database error on {request.method} {request.url.path}: {str(exc)}")
    return error_response(500, "Internal server error")

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Global exception on {request.method} {request.url.path}: {str(exc)}")
    return error_response(500, "Internal server error")

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    db_status = test_connection()
    content = {
        "status": "healthy" if db_status else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected" if db_status else "disconnected",
        "version": "1.0.0",
    }
    return JSONResponse(status_code=200 if db_status else 503, content=content)

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Harvest Supply-Chain API",
        "version": "1.0.0",
        "status": "running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "docs": "/docs",
        "health": "/health"
    }

app.include_router(auth_router, prefix="/api/auth", tags=["Authentication"])
app.include_router(admin_router, prefix="/api/admin", tags=["Admin"])
app.include_router(field_agent_router, prefix="/api/field-agent", tags=["Field Agent"])
app.include_router(procurement_router, prefix="/api/procurement", tags=["Procurement"])
app.include_router(warehouse_router, prefix="/api/warehouse", tags=["Warehouse"])
app.include_router(transport_coordinator_router, prefix="/api/transport", tags=["Transport Coordinator"])
app.include_router(transport_driver_router, prefix="/api/driver", tags=["Transport Driver"])
app.include_router(notifications_router, prefix="/api/notifications", tags=["Notifications"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
