"""Pytest fixtures for CareNotes tests."""

from collections.abc import AsyncGenerator, Callable
from uuid import UUID

import pytest
import pytest_asyncio
import structlog
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import AsyncSession
from uuid_utils.compat import uuid7

from carenotes.config.settings import Settings
from carenotes.core.context import ActorType, RequestContext, create_context
from carenotes.core.credentials import issue_credential
from carenotes.core.permissions import CapabilitySet
from carenotes.core.seeding import TenantSeed, seed_defaults
from carenotes.db.config import Database

TEST_SECRET = "test-signing-secret-that-is-long-enough-for-hs256"


# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Settings and database
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for an in-memory database and a known signing secret."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DEBUG=True,
        log_level="DEBUG",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        CREDENTIAL_SIGNING_SECRET=SecretStr(TEST_SECRET),
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """A fresh in-memory database with every table created."""
    db = Database(test_settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with database.session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def tenants(database: Database, test_settings: Settings) -> dict[str, UUID]:
    """Two seeded tenants plus the default roles, keyed by slug."""
    async with database.session() as session:
        report = await seed_defaults(
            session,
            tenants=[TenantSeed("Oak Lodge", "oak-lodge"), TenantSeed("Birch House", "birch-house")],
            settings=test_settings,
        )
    return report.tenant_ids


@pytest.fixture
def tenant_a(tenants: dict[str, UUID]) -> UUID:
    return tenants["oak-lodge"]


@pytest.fixture
def tenant_b(tenants: dict[str, UUID]) -> UUID:
    return tenants["birch-house"]


# =============================================================================
# Contexts and credentials
# =============================================================================


@pytest.fixture
def make_context() -> Callable[..., RequestContext]:
    """Build a RequestContext with explicit capabilities."""

    def _make(tenant_id: UUID, capabilities: list[str] | None = None, **kwargs) -> RequestContext:
        return create_context(
            tenant_id=tenant_id,
            actor_id=kwargs.pop("actor_id", None) or uuid7(),
            capabilities=CapabilitySet.from_strings(capabilities if capabilities is not None else ["*"]),
            **kwargs,
        )

    return _make


@pytest.fixture
def admin_ctx(tenant_a: UUID, make_context) -> RequestContext:
    return make_context(tenant_a)


@pytest.fixture
def auth_headers(test_settings: Settings) -> Callable[..., dict[str, str]]:
    """Authorization headers for an actor in a tenant with the given roles."""

    def _headers(
        tenant_id: UUID,
        roles: tuple[str, ...] = ("administrator",),
        actor_id: UUID | None = None,
        actor_type: ActorType = ActorType.HUMAN,
    ) -> dict[str, str]:
        token = issue_credential(
            test_settings,
            actor_id=actor_id or uuid7(),
            tenant_id=tenant_id,
            roles=roles,
            actor_type=actor_type,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def test_app(test_settings: Settings, database: Database) -> FastAPI:
    """FastAPI application bound to the test database."""
    from carenotes.api.app import create_app

    return create_app(settings=test_settings, database=database, configure_logging=False)


@pytest_asyncio.fixture
async def test_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client calling the application in-process."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as client:
        yield client
