from datetime import datetime, timedelta, timezone

import pytest

from taskhub.config import Settings
from taskhub.database import Database
from taskhub.services.otp import OtpService
from taskhub.services.users import UserStore


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def user_store(database):
    return UserStore(database)


@pytest.fixture
def alice(user_store):
    entry, _ = user_store.ensure_user("alice@example.com", "Alice Example")
    return entry


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def otp_service(database, user_store, clock):
    return OtpService(
        database, user_store, ttl_seconds=300, max_attempts=3, clock=clock
    )


@pytest.fixture
def app_settings():
    return Settings(
        database_url="sqlite://",
        otp_debug=True,
        otp_email_sender="",
        smtp_host="",
        cors_origins=[],
        seed_email="",
    )
