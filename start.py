#!/usr/bin/env python3
"""
Supply-Chain Backend Startup Script
Handles graceful startup with error diagnostics
"""

import os
import sys
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

REQUIRED_VARS = [
    "DATABASE_URL",
    "SUPABASE_JWT_SECRET",
]

OPTIONAL_VARS = [
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
]

def check_environment():
    """Check if all required environment variables are set"""
    missing_vars = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing_vars:
        logger.error(f"❌ Missing environment variables: {missing_vars}")
        return False

    unset = [var for var in OPTIONAL_VARS if not os.getenv(var)]
    if unset:
        logger.warning(f"⚠️ {unset} not set; admin user provisioning is disabled")

    logger.info("✅ All required environment variables are set")
    return True

def check_database_connection():
    """Test database connectivity before starting the server"""
    try:
        from database import test_connection

        logger.info("🔍 Testing database connection...")
        if test_connection():
            return True
        logger.info("⚠️ Continuing anyway - will try to connect during runtime")
        return False

    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        logger.info("⚠️ Continuing anyway - will try to connect during runtime")
        return False

def start_server():
    """Start the FastAPI server"""
    try:
        import uvicorn
        from main import app

        port = int(os.getenv("PORT", 8000))
        host = os.getenv("HOST", "0.0.0.0")

        logger.info(f"🚀 Starting Supply-Chain Backend on {host}:{port}")

        uvicorn.run(
            app,
            host=host,
            port=port,
            log_level="info"
        )

    except Exception as e:
        logger.error(f"❌ Failed to start server: {e}")
        sys.exit(1)

def main():
    """Main startup function"""
    logger.info("🌱 Supply-Chain Backend - Starting Up...")

    if not check_environment():
        logger.error("❌ Environment check failed")
        sys.exit(1)

    # Don't stop startup for DB issues
    check_database_connection()

    start_server()

if __name__ == "__main__":
    main()
