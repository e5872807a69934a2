"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from decimal import Decimal
from pathlib import Path

from alembic import command
from alembic.config import Config
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine, delete

# --- Default environment
os.environ.setdefault("DATABASE_URL", "sqlite:///./approvaldesk_test.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUDIT_RETRY_ENABLED", "false")

from approvaldesk.config import get_settings  # noqa: E402
from approvaldesk.db import engine_kwargs, get_session_factory, make_sessionmaker  # noqa: E402
from approvaldesk.main import app  # noqa: E402
from approvaldesk.models import Approval, AuditLogEntry  # noqa: E402
from approvaldesk.models.approval import ApprovalType  # noqa: E402
from approvaldesk.schemas.actor import Actor  # noqa: E402
from approvaldesk.schemas.approval import ApprovalCreate, ApprovalRead  # noqa: E402
from approvaldesk.services.approvals import ApprovalRegistry  # noqa: E402
from approvaldesk.services.audit import AuditRetryQueue, AuditTrail  # noqa: E402

DB_PATH = Path("./approvaldesk_test.db")


def _run_migrations() -> None:
    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", os.environ["DATABASE_URL"])
    command.upgrade(cfg, "head")


# --- (1) Fresh database file per session
if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(os.environ["DATABASE_URL"], future=True, **engine_kwargs(os.environ["DATABASE_URL"]))
TestingSessionLocal = make_sessionmaker(engine)

# --- (2) Schema comes from the Alembic migrations only
_run_migrations()


@pytest.fixture(autouse=True)
def clean_tables() -> Iterator[None]:
    yield
    with engine.begin() as conn:
        conn.execute(delete(AuditLogEntry))
        conn.execute(delete(Approval))


@pytest.fixture(autouse=True)
def override_session_factory() -> Iterator[None]:
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.state.audit_retry_queue = AuditRetryQueue()
    yield
    app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def audit_trail() -> AuditTrail:
    return AuditTrail(TestingSessionLocal, retry_queue=AuditRetryQueue(), settings=get_settings())


@pytest.fixture
def registry(audit_trail: AuditTrail) -> ApprovalRegistry:
    return ApprovalRegistry(TestingSessionLocal, audit_trail)


@pytest.fixture
def make_approval(registry: ApprovalRegistry) -> Callable[..., ApprovalRead]:
    def _factory(
        *,
        type: ApprovalType = ApprovalType.PURCHASE,
        amount: Decimal | None = Decimal("150.00"),
        requester: str = "requester@example.com",
        approver: str = "approver@example.com",
        description: str | None = "New laptop",
    ) -> ApprovalRead:
        payload = ApprovalCreate(
            type=type,
            amount=amount,
            requester=requester,
            approver=approver,
            description=description,
        )
        return registry.create_approval(payload)

    return _factory


def _actor(role: str) -> Actor:
    return Actor(id=f"u-{role}", email=f"{role}@example.com", role=role)


@pytest.fixture
def admin() -> Actor:
    return _actor("admin")


@pytest.fixture
def approver() -> Actor:
    return _actor("approver")


@pytest.fixture
def manager() -> Actor:
    return _actor("manager")


def _headers(actor: Actor) -> dict[str, str]:
    return {"X-Actor-Id": actor.id, "X-Actor-Email": actor.email, "X-Actor-Role": actor.role}


@pytest.fixture
def admin_headers(admin: Actor) -> dict[str, str]:
    return _headers(admin)


@pytest.fixture
def approver_headers(approver: Actor) -> dict[str, str]:
    return _headers(approver)


@pytest.fixture
def manager_headers(manager: Actor) -> dict[str, str]:
    return _headers(manager)


@pytest.fixture
def auditor_headers() -> dict[str, str]:
    return _headers(_actor("auditor"))


@pytest.fixture
def user_headers() -> dict[str, str]:
    return _headers(_actor("user"))


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
