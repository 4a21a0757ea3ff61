import logging
from typing import Callable

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.exc import OperationalError, DisconnectionError

from core.config import settings

logger = logging.getLogger(__name__)

# Database engine configuration
engine = create_engine(
    settings.DATABASE_URL,
    pool_size=20,
    max_overflow=30,
    pool_timeout=30,
    pool_recycle=3600,
    pool_pre_ping=True,
    echo=False
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

SessionFactory = Callable[[], Session]


def check_connection(session_factory: SessionFactory = SessionLocal, max_retries: int = 3) -> bool:
    """Ping the database, retrying on dropped connections.

    Returns False instead of raising so health checks can report a degraded
    database without failing the whole request.
    """
    retry_count = 0

    while retry_count < max_retries:
        session = session_factory()
        try:
            session.execute(text("SELECT 1"))
            return True
        except (OperationalError, DisconnectionError) as e:
            retry_count += 1
            logger.warning(
                f"Database connection attempt {retry_count} failed: {str(e)}"
            )
            bind = session.get_bind()
            if isinstance(bind, Engine):
                bind.dispose()
        finally:
            session.close()

    logger.error("Max database connection retries exceeded")
    return False
