"""
Base class for the meeting control-plane services
"""
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agm_backend.config import get_settings
from agm_backend.exceptions import DependencyError
from agm_backend.utils.logger import get_logger


class BaseService:
    """
    Holds the request-scoped session. Services keep no state of their own
    between calls; everything lives in the record store.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.logger = get_logger(self.__class__.__module__)

    @asynccontextmanager
    async def store_call(self, operation: str):
        """Roll back and translate record store failures into DependencyError"""
        try:
            yield
        except SQLAlchemyError as e:
            await self.db.rollback()
            self.logger.error(f"Record store failure during {operation}: {e}")
            raise DependencyError(f"Record store failure during {operation}", operation=operation) from e
