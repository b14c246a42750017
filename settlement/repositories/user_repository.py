"""
User repository.

Member rows are read here and locked by the services that move balance or
PIN state.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.user import User
from settlement.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Member accounts."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(User, session)
