"""
PIN gate.

Guards every withdrawal mutation with a salted 6-digit PIN. Consecutive
failures lock the account for a fixed window; attempts while locked are
refused without comparing the hash.
"""

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config.settings import settings
from settlement.models.user import User
from settlement.repositories.user_repository import UserRepository
from settlement.services.base_service import BaseService, transaction
from settlement.utils.datetime_utils import ensure_utc
from settlement.utils.db_decorators import retry_on_conflict
from settlement.utils.exceptions import (
    IncorrectPin,
    InvalidPinFormat,
    InvalidTransition,
    PinLocked,
    PinNotSet,
    UserNotFound,
)
from settlement.validators.common import validate_pin_format


# Outcomes of one verification attempt
OUTCOME_OK = "ok"
OUTCOME_LOCKED = "locked"
OUTCOME_LOCKED_NOW = "locked_now"
OUTCOME_INCORRECT = "incorrect"


class PinGate(BaseService):
    """PIN verification with attempt counting and lockout."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize PIN gate."""
        super().__init__(session)
        self.user_repo = UserRepository(session)

    async def verify(
        self, user_id: int, pin: str, now: datetime | None = None
    ) -> None:
        """
        Verify a PIN, committing the attempt counter either way.

        Args:
            user_id: Member ID
            pin: PIN as typed
            now: Evaluation instant

        Raises:
            UserNotFound: Unknown member
            PinNotSet: Member has no PIN yet
            PinLocked: Account is locked, or this miss triggered the lock
            IncorrectPin: Wrong PIN, attempts remain
        """
        now = self.resolve_now(now)
        outcome, detail = await self._register_attempt(user_id, pin, now)

        if outcome == OUTCOME_OK:
            return

        if outcome == OUTCOME_LOCKED:
            raise PinLocked(detail)

        if outcome == OUTCOME_LOCKED_NOW:
            self.logger.warning(
                f"User {user_id} locked out after {settings.pin_max_attempts} wrong PINs",
                extra={"user_id": user_id, "locked_until": detail.isoformat()},
            )
            raise PinLocked(detail)

        raise IncorrectPin(detail)

    @retry_on_conflict
    async def _register_attempt(
        self, user_id: int, pin: str, now: datetime
    ) -> tuple[str, object]:
        user = await self._get_user(user_id, for_update=True)

        if not user.has_pin:
            raise PinNotSet()

        locked_until = ensure_utc(user.pin_locked_until)
        if locked_until is not None:
            if now < locked_until:
                return OUTCOME_LOCKED, locked_until
            # Lockout expired, reset attempts
            user.pin_failed_attempts = 0
            user.pin_locked_until = None

        if user.check_pin(pin):
            user.pin_failed_attempts = 0
            user.pin_locked_until = None
            return OUTCOME_OK, None

        user.pin_failed_attempts = (user.pin_failed_attempts or 0) + 1
        attempts_left = settings.pin_max_attempts - user.pin_failed_attempts

        if attempts_left <= 0:
            user.pin_locked_until = now + timedelta(minutes=settings.pin_lockout_minutes)
            return OUTCOME_LOCKED_NOW, user.pin_locked_until

        self.logger.info(
            f"Wrong PIN for user {user_id}",
            extra={"user_id": user_id, "attempts_left": attempts_left},
        )
        return OUTCOME_INCORRECT, attempts_left

    @transaction
    async def setup_pin(
        self, user_id: int, pin: str, now: datetime | None = None
    ) -> User:
        """
        Set the first PIN of a member.

        Args:
            user_id: Member ID
            pin: New PIN, exactly 6 digits
            now: Setup instant

        Returns:
            Updated user

        Raises:
            InvalidPinFormat: PIN is not 6 digits
            InvalidTransition: A PIN is already set
        """
        is_valid, pin, error = validate_pin_format(pin)
        if not is_valid:
            raise InvalidPinFormat(error)

        user = await self._get_user(user_id, for_update=True)
        if user.has_pin:
            raise InvalidTransition("PIN is already set. Use change PIN instead")

        self._store_pin(user, pin, self.resolve_now(now))
        self.logger.info(f"PIN set up for user {user_id}")
        return user

    async def change_pin(
        self,
        user_id: int,
        old_pin: str,
        new_pin: str,
        now: datetime | None = None,
    ) -> User:
        """
        Replace the PIN after verifying the current one.

        A wrong ``old_pin`` counts as a failed attempt.
        """
        is_valid, new_pin, error = validate_pin_format(new_pin)
        if not is_valid:
            raise InvalidPinFormat(error)

        now = self.resolve_now(now)
        await self.verify(user_id, old_pin, now)
        return await self._replace_pin(user_id, new_pin, now)

    @transaction
    async def _replace_pin(self, user_id: int, pin: str, now: datetime) -> User:
        user = await self._get_user(user_id, for_update=True)
        self._store_pin(user, pin, now)
        self.logger.info(f"PIN changed for user {user_id}")
        return user

    @transaction
    async def unlock(self, user_id: int, admin_id: str | None = None) -> User:
        """
        Clear the failure counter and any lockout (administrator reset).

        Args:
            user_id: Member ID
            admin_id: Administrator performing the reset

        Returns:
            Updated user
        """
        user = await self._get_user(user_id, for_update=True)
        user.pin_failed_attempts = 0
        user.pin_locked_until = None

        self.logger.info(
            f"PIN lock cleared for user {user_id}",
            extra={"user_id": user_id, "admin_id": admin_id},
        )
        return user

    async def is_locked(self, user_id: int, now: datetime | None = None) -> bool:
        """Check whether the member is currently locked out."""
        user = await self._get_user(user_id)
        locked_until = ensure_utc(user.pin_locked_until)
        return locked_until is not None and self.resolve_now(now) < locked_until

    async def _get_user(self, user_id: int, for_update: bool = False) -> User:
        if for_update:
            user = await self.user_repo.get_for_update(user_id)
        else:
            user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise UserNotFound()
        return user

    @staticmethod
    def _store_pin(user: User, pin: str, now: datetime) -> None:
        user.set_pin(pin)
        user.pin_set_at = now
        user.pin_failed_attempts = 0
        user.pin_locked_until = None
