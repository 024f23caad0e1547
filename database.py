import logging
from sqlalchemy import create_engine, text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import SQLAlchemyError
from typing import Generator

from config import settings

logger = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL

# JSONB on Postgres, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

if DATABASE_URL.startswith("sqlite"):
    engine_args = {"connect_args": {"check_same_thread": False, "timeout": 30}}
else:
    engine_args = {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

try:
    engine = create_engine(DATABASE_URL, echo=False, **engine_args)
    logger.info("✅ SQLAlchemy engine initialized")
except Exception as e:
    logger.error(f"❌ Failed to initialize database engine: {str(e)}")
    raise

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db() -> Generator[Session, None, None]:
    """
    Database dependency for FastAPI dependency injection.
    Creates a new SQLAlchemy SessionLocal for each request and closes it when done.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Database session error: {str(e)}")
        db.rollback()
        raise
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

def test_connection() -> bool:
    """
    Test database connectivity

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            logger.info("✅ Database connection test successful")
            return True
    except Exception as e:
        logger.error(f"❌ Database connection test failed: {str(e)}")
        return False

# not a pytest test
test_connection.__test__ = False

def init_db():
    """
    Initialize database tables (if needed)
    This will create all tables defined in the models package
    """
    try:
        import models  # noqa: F401  registers every table on Base

        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database tables initialized")
    except Exception as e:
        logger.error(f"❌ Failed to initialize database tables: {str(e)}")
        raise
