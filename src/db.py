import logging

from sqlmodel import create_engine, SQLModel
from sqlalchemy.pool import StaticPool
from src.models import *
from src.config import settings

logger = logging.getLogger("AnalyticsAPI.DB")

# Get the DATABASE_URL from our centralized settings
DATABASE_URL = settings.DATABASE_URL
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is not set")


def build_engine(url: str):
    """Creates an engine; in-memory SQLite is shared across threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(DATABASE_URL)

def create_db_and_tables():
    logger.info("Creating dataset tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("Dataset tables revenue_tracking, studio_analytics, user_behavior ready.")