from datetime import datetime, timezone

from sqlalchemy import select

from taskhub.database import Database
from taskhub.models.user import UserEntry


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    def __init__(self, database: Database) -> None:
        self._database = database

    def get_by_email(self, email: str) -> UserEntry | None:
        key = normalize_email(email)
        with self._database.session_scope() as session:
            result = session.execute(select(UserEntry).where(UserEntry.email == key))
            return result.scalar_one_or_none()

    def ensure_user(self, email: str, full_name: str | None = None) -> tuple[UserEntry, bool]:
        key = normalize_email(email)
        if "@" not in key:
            raise ValueError("Invalid email")

        with self._database.session_scope() as session:
            entry = session.execute(
                select(UserEntry).where(UserEntry.email == key)
            ).scalar_one_or_none()
            if entry:
                if full_name and not entry.full_name:
                    entry.full_name = full_name
                session.flush()
                return entry, True

            entry = UserEntry(
                email=key,
                full_name=full_name or None,
                created_at=datetime.now(timezone.utc),
            )
            session.add(entry)
            session.flush()
            return entry, False
