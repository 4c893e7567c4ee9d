import os

# Configure the environment before the application modules are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LOG_FORMAT"] = "text"
os.environ["ENVIRONMENT"] = "test"

import threading
from datetime import timedelta
from typing import Dict, List, Optional

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from tna_intake.api.deps import get_dispatcher, get_repository
from tna_intake.core.auth import TokenBlacklist
from tna_intake.core.config import ParameterProvider, Settings
from tna_intake.core.context import get_parameters
from tna_intake.core.database import Base, SessionLocal, engine, init_db
from tna_intake.core.errors import NotificationError
from tna_intake.core.security import create_access_token
from tna_intake.main import create_application
from tna_intake.services.cache import CacheService
from tna_intake.services.email_service import EmailSink
from tna_intake.services.notifications import NotificationDispatcher
from tna_intake.services.rate_limit import SlidingWindowRateLimiter
from tna_intake.services.repository import SubmissionRepository
from tna_intake.services.sms_service import SmsSink


TEST_SECRET = "test-secret-key"
ADMIN_EMAIL = "alerts@truenorthadvocates.org"
ADMIN_PHONE = "+15550100000"


# =============================================================================
# Fake delivery sinks
# =============================================================================

class FakeEmailSink(EmailSink):
    name = "fake-email"

    def __init__(self, configured: bool = True, fail: bool = False):
        self.configured = configured
        self.fail = fail
        self.sent: List[dict] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def send(self, to_email, subject, html_content, text_content=None):
        if self.fail:
            raise NotificationError(self.name, "mailbox unavailable")
        self.sent.append({
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content,
        })
        return f"msg-{len(self.sent)}"


class FakeSmsSink(SmsSink):
    name = "fake-sms"

    def __init__(self, configured: bool = True, fail: bool = False):
        self.configured = configured
        self.fail = fail
        self.sent: List[dict] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def send(self, to_number, message):
        if self.fail:
            raise NotificationError(self.name, "carrier rejected")
        self.sent.append({"to": to_number, "message": message})
        return f"SM{len(self.sent)}"


# =============================================================================
# Fake Redis
# =============================================================================

class FakeRedis:
    """
    In-memory stand-in for the redis-py calls the cache-backed components make.

    Pipelines run under one lock, like a MULTI block on a real server.
    Setting ``down`` makes every call fail the way an unreachable server does.
    """

    def __init__(self, down: bool = False):
        self.down = down
        self.pings = 0
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.sorted_sets: Dict[str, Dict[str, float]] = {}
        self.lock = threading.RLock()

    def _check(self):
        if self.down:
            raise RedisConnectionError("Connection refused")

    def ping(self):
        self.pings += 1
        self._check()
        return True

    def set(self, key, value):
        self._check()
        with self.lock:
            self.values[key] = value

    def setex(self, key, ttl, value):
        self._check()
        with self.lock:
            self.values[key] = value
            self.ttls[key] = ttl

    def exists(self, key):
        self._check()
        with self.lock:
            return int(key in self.values)

    def expire(self, key, seconds):
        self._check()
        with self.lock:
            self.ttls[key] = seconds
            return True

    def zadd(self, key, mapping):
        self._check()
        with self.lock:
            self.sorted_sets.setdefault(key, {}).update(mapping)
            return len(mapping)

    def zcard(self, key):
        self._check()
        with self.lock:
            return len(self.sorted_sets.get(key, {}))

    def zrem(self, key, member):
        self._check()
        with self.lock:
            return int(self.sorted_sets.get(key, {}).pop(member, None) is not None)

    def zremrangebyscore(self, key, low, high):
        self._check()
        with self.lock:
            entries = self.sorted_sets.get(key, {})
            stale = [member for member, score in entries.items() if low <= score <= high]
            for member in stale:
                del entries[member]
            return len(stale)

    def zrange(self, key, start, end, withscores=False):
        self._check()
        with self.lock:
            ordered = sorted(self.sorted_sets.get(key, {}).items(), key=lambda item: item[1])
        selected = ordered[start:None if end == -1 else end + 1]
        return selected if withscores else [member for member, _ in selected]

    def pipeline(self, transaction=True):
        self._check()
        return FakePipeline(self)


class FakePipeline:

    def __init__(self, redis_client: FakeRedis):
        self.redis_client = redis_client
        self.commands = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self.commands.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        with self.redis_client.lock:
            return [
                getattr(self.redis_client, name)(*args, **kwargs)
                for name, args, kwargs in self.commands
            ]


def make_cache(redis_client: FakeRedis, **kwargs) -> CacheService:
    return CacheService(
        "redis://cache.test:6379/0",
        enabled=True,
        client_factory=lambda url, **options: redis_client,
        **kwargs,
    )


def make_settings(**overrides) -> Settings:
    values = {
        "secret_key": TEST_SECRET,
        "admin_email": ADMIN_EMAIL,
        "admin_phone": ADMIN_PHONE,
        "cache_enabled": False,
    }
    values.update(overrides)
    return Settings(**values)


def make_token(sub: str = "1", role: str = "staff", secret: str = TEST_SECRET,
               expires: Optional[timedelta] = None) -> str:
    return create_access_token(
        {"sub": sub, "role": role, "email": f"{role}@truenorthadvocates.org"},
        secret,
        expires or timedelta(minutes=60),
    )


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create tables once for the whole run."""
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """Empty every table before each test."""
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Application
# =============================================================================

@pytest.fixture
def email_sink():
    return FakeEmailSink()


@pytest.fixture
def sms_sink():
    return FakeSmsSink()


@pytest.fixture
def test_settings():
    return make_settings()


@pytest.fixture
def app(test_settings, email_sink, sms_sink):
    application = create_application(
        parameters=ParameterProvider(loader=lambda: test_settings, ttl_seconds=300),
        rate_limiter=SlidingWindowRateLimiter(None, limit=100, window_seconds=900),
    )
    application.state.blacklist = TokenBlacklist(None)

    def dispatcher_with_fakes(
        repository: SubmissionRepository = Depends(get_repository),
        params: Settings = Depends(get_parameters),
    ) -> NotificationDispatcher:
        return NotificationDispatcher(
            repository, params, email_sinks=[email_sink], sms_sinks=[sms_sink],
        )

    application.dependency_overrides[get_dispatcher] = dispatcher_with_fakes
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def staff_headers():
    return {"Authorization": f"Bearer {make_token(sub='2', role='staff')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token(sub='1', role='admin')}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {make_token(sub='3', role='user')}"}


@pytest.fixture
def patient_payload():
    return {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "phone": "(555) 123-4567",
        "location": "Left heel, Right ankle",
        "wound_type": "diabetic ulcer",
        "urgency": "medium",
        "message": "Looking for a wound care specialist near Phoenix.",
    }


@pytest.fixture
def provider_payload():
    return {
        "name": "Dr. Sam Rivera",
        "email": "sam.rivera@clinic.example",
        "phone": "555-987-6543",
        "credentials": "MD, CWS",
        "specialties": ["wound care", "vascular surgery"],
        "location": "Tucson, AZ",
    }
