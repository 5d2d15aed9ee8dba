import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from taskhub.database import Database
from taskhub.models.otp import OtpEntry
from taskhub.schemas.otp import OtpFailure, OtpResult
from taskhub.services.users import UserStore, normalize_email

LOGGER = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


class OtpService:
    """Issues and verifies one-time passwords stored in ``user_otps``.

    A subject has at most one record at a time: issuing deletes every prior
    record for the user before inserting the new one. Verification mutates
    the record in place through conditional updates, so two concurrent
    calls cannot both consume the same attempt or both mark it verified.
    """

    def __init__(
        self,
        database: Database,
        users: UserStore,
        ttl_seconds: int = 300,
        max_attempts: int = 3,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._database = database
        self._users = users
        self._ttl_seconds = ttl_seconds
        self._max_attempts = max_attempts
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def issue(self, email: str) -> OtpResult:
        normalized = normalize_email(email)
        try:
            user = self._users.get_by_email(normalized)
        except SQLAlchemyError:
            LOGGER.exception("User lookup failed while issuing OTP email=%s", normalized)
            return OtpResult.failed(OtpFailure.STORAGE_ERROR, "Internal server error")
        if user is None:
            LOGGER.warning("OTP requested for unknown email=%s", normalized)
            return OtpResult.failed(OtpFailure.NOT_FOUND, "User not found")

        user_id = user.id

        now = self._clock()
        code = generate_code()
        try:
            with self._database.session_scope() as session:
                session.execute(delete(OtpEntry).where(OtpEntry.user_id == user_id))
            # Separate unit of work: a failed insert leaves the subject with no code.
            with self._database.session_scope() as session:
                session.add(
                    OtpEntry(
                        user_id=user_id,
                        email=normalized,
                        code=code,
                        expires_at=now + timedelta(seconds=self._ttl_seconds),
                        attempts=0,
                        verified=False,
                        created_at=now,
                    )
                )
        except SQLAlchemyError:
            LOGGER.exception("Failed to store OTP for email=%s", normalized)
            return OtpResult.failed(OtpFailure.STORAGE_ERROR, "Failed to generate OTP")

        LOGGER.info("OTP issued for email=%s", normalized)
        return OtpResult(success=True, code=code)

    def verify(self, email: str, submitted_code: str) -> OtpResult:
        normalized = normalize_email(email)
        try:
            return self._verify(normalized, submitted_code.strip())
        except SQLAlchemyError:
            LOGGER.exception("OTP verification failed for email=%s", normalized)
            return OtpResult.failed(OtpFailure.STORAGE_ERROR, "Failed to verify OTP")

    def purge_expired(self) -> int:
        now = self._clock()
        with self._database.session_scope() as session:
            result = session.execute(
                delete(OtpEntry).where(
                    OtpEntry.expires_at < now, OtpEntry.verified.is_(False)
                )
            )
            removed = result.rowcount or 0
        LOGGER.info("Removed %s expired OTP records", removed)
        return removed

    def _verify(self, email: str, code: str) -> OtpResult:
        entry = self._latest_for_email(email)
        if entry is None:
            LOGGER.warning("OTP verification failed: no OTP found for email=%s", email)
            return OtpResult.failed(OtpFailure.INVALID, "Invalid or expired OTP")

        refused = self._refusal(entry)
        if refused is not None:
            LOGGER.warning("OTP verification refused for email=%s: %s", email, refused.message)
            return refused

        attempts_read = entry.attempts
        try:
            consumed = self._consume_attempt(entry.id)
        except SQLAlchemyError:
            LOGGER.exception("Failed to record OTP attempt for email=%s", email)
            consumed = True
        if not consumed:
            # Another call got there first; report what it left behind.
            current = self._get(entry.id)
            if current is None:
                return OtpResult.failed(OtpFailure.INVALID, "Invalid or expired OTP")
            return self._refusal(current) or OtpResult.failed(
                OtpFailure.ATTEMPTS_EXHAUSTED, "Maximum attempts reached"
            )

        if entry.code != code:
            remaining = self._max_attempts - attempts_read - 1
            LOGGER.warning("OTP mismatch for email=%s", email)
            return OtpResult.failed(
                OtpFailure.MISMATCH,
                f"Invalid code. {remaining} attempts remaining",
            )

        if not self._mark_verified(entry.id):
            return OtpResult.failed(OtpFailure.ALREADY_USED, "OTP already used")
        LOGGER.info("OTP verified for email=%s", email)
        return OtpResult(success=True, message="OTP verified")

    def _refusal(self, entry: OtpEntry) -> Optional[OtpResult]:
        if entry.verified:
            return OtpResult.failed(OtpFailure.ALREADY_USED, "OTP already used")
        if self._clock() > _as_utc(entry.expires_at):
            return OtpResult.failed(OtpFailure.EXPIRED, "OTP has expired")
        if entry.attempts >= self._max_attempts:
            return OtpResult.failed(
                OtpFailure.ATTEMPTS_EXHAUSTED, "Maximum attempts reached"
            )
        return None

    def _latest_for_email(self, email: str) -> Optional[OtpEntry]:
        with self._database.session_scope() as session:
            return (
                session.execute(
                    select(OtpEntry)
                    .where(OtpEntry.email == email)
                    .order_by(OtpEntry.created_at.desc())
                    .limit(1)
                )
                .scalars()
                .first()
            )

    def _get(self, otp_id: str) -> Optional[OtpEntry]:
        with self._database.session_scope() as session:
            return session.get(OtpEntry, otp_id)

    def _consume_attempt(self, otp_id: str) -> bool:
        with self._database.session_scope() as session:
            result = session.execute(
                update(OtpEntry)
                .where(
                    OtpEntry.id == otp_id,
                    OtpEntry.attempts < self._max_attempts,
                    OtpEntry.verified.is_(False),
                )
                .values(attempts=OtpEntry.attempts + 1)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def _mark_verified(self, otp_id: str) -> bool:
        with self._database.session_scope() as session:
            result = session.execute(
                update(OtpEntry)
                .where(OtpEntry.id == otp_id, OtpEntry.verified.is_(False))
                .values(verified=True)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0
