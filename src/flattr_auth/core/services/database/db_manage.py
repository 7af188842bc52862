"""Schema management for the profile store."""

from loguru import logger
from sqlalchemy import Engine
from sqlmodel import SQLModel

from src.flattr_auth.runtime.context import get_config


class DbManageService:
    def __init__(self, engine: Engine | None = None):
        if engine is None:
            from src.flattr_auth.core.services.database.db_session import build_engine

            engine = build_engine(get_config())
        self._engine = engine

    def create_all(self) -> None:
        """Create all database tables."""
        from src.flattr_auth.entities.core.user_profile import UserProfileTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database initialized with tables.")
