"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

from alembic import command
from alembic.config import Config
import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# --- Default environment for the test run
os.environ.setdefault("DATABASE_URL", "sqlite:///./freightpay_test.db")
os.environ.setdefault("FREIGHTPAY_ENV", "test")
os.environ.setdefault("PAYFAST_PASSPHRASE", "jt7NOE43FZPn")
os.environ.setdefault("PAYFAST_VERIFY_WITH_GATEWAY", "false")

from freightpay.main import app  # noqa: E402
from freightpay.db import get_db  # noqa: E402
from freightpay.dependencies import (  # noqa: E402
    get_notifier,
    get_payfast_config,
    get_payfast_http_client,
    get_payment_gateway,
)
from freightpay.models import Load, User  # noqa: E402
from freightpay.schemas.payment import CardPaymentDetails  # noqa: E402
from freightpay.services.escrow import EscrowLedger  # noqa: E402
from freightpay.services.gateway import GatewayResult  # noqa: E402
from freightpay.services.notifier import UserNotification, deliver  # noqa: E402
from freightpay.services.payfast import PayFastConfig  # noqa: E402

DB_PATH = Path("./freightpay_test.db")
PASSPHRASE = os.environ["PAYFAST_PASSPHRASE"]
VALIDATE_URL = "https://sandbox.payfast.co.za/eng/query/validate"


def _run_migrations() -> None:
    cfg = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", os.environ["DATABASE_URL"])
    command.upgrade(cfg, "head")


# --- (1) Fresh database file per session
if DB_PATH.exists():
    DB_PATH.unlink()

engine = create_engine(
    os.environ["DATABASE_URL"],
    connect_args={"check_same_thread": False},
    future=True,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False,
                                   future=True, expire_on_commit=False)

# --- (2) Schema is built through Alembic only
_run_migrations()


class FakeGateway:
    """Scripted gateway double recording every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Decimal, str | None]] = []
        self.fail_next: dict[str, str] = {}
        self.raise_next: dict[str, Exception] = {}

    def _result(self, operation: str, prefix: str) -> GatewayResult:
        if operation in self.raise_next:
            raise self.raise_next.pop(operation)
        if operation in self.fail_next:
            return GatewayResult(success=False, message=self.fail_next.pop(operation))
        return GatewayResult(success=True, transaction_id=f"{prefix}-{uuid4().hex[:12].upper()}")

    def capture(self, amount: Decimal, card: CardPaymentDetails) -> GatewayResult:
        self.calls.append(("capture", amount, card.card_number[-4:]))
        return self._result("capture", "TXN")

    def payout(self, amount: Decimal, driver_id: str) -> GatewayResult:
        self.calls.append(("payout", amount, driver_id))
        return self._result("payout", "PAYOUT")

    def refund(self, amount: Decimal, transaction_id: str | None) -> GatewayResult:
        self.calls.append(("refund", amount, transaction_id))
        return self._result("refund", "REFUND")


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[UserNotification] = []

    def send(self, notification: UserNotification) -> None:
        self.sent.append(notification)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def db_session() -> Iterator[Session]:
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def payfast_config() -> PayFastConfig:
    return PayFastConfig(
        merchant_id="10000100",
        merchant_key="46f0cd694581a",
        passphrase=PASSPHRASE,
        process_url="https://sandbox.payfast.co.za/eng/process",
        validate_url=VALIDATE_URL,
        return_url="http://test/payfast/return",
        cancel_url="http://test/payfast/cancel",
        notify_url="http://test/payfast/notify",
        verify_with_gateway=False,
        timeout_seconds=2.0,
    )


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2025, 12, 9, 10, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def override_dependencies(
    db_session: Session,
    fake_gateway: FakeGateway,
    notifier: RecordingNotifier,
    payfast_config: PayFastConfig,
) -> Iterator[None]:
    def _get_db() -> Iterator[Session]:
        yield db_session

    def _get_http_client() -> Iterator[httpx.Client]:
        with httpx.Client(timeout=2.0) as client:
            yield client

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_payfast_config] = lambda: payfast_config
    app.dependency_overrides[get_payfast_http_client] = _get_http_client
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def make_user(db_session: Session) -> Callable[..., User]:
    def _factory(full_name: str = "Thandi Nkosi", email: str | None = None) -> User:
        user = User(
            full_name=full_name,
            email=email or f"user-{uuid4().hex[:8]}@example.com",
            phone_number="0821234567",
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _factory


@pytest.fixture
def make_load(db_session: Session, make_user: Callable[..., User]) -> Callable[..., Load]:
    """Factory creating a load owned by a fresh customer, optionally with a driver."""

    def _factory(
        *,
        customer: User | None = None,
        driver: User | None = None,
        title: str = "Office furniture",
        weight_kg: int = 350,
        cargo_type: str = "Furniture",
    ) -> Load:
        owner = customer or make_user()
        load = Load(
            title=title,
            description="Desks and chairs",
            cargo_type=cargo_type,
            weight_kg=weight_kg,
            pickup_location="Sandton",
            dropoff_location="Pretoria",
            pickup_latitude=Decimal("-26.107600"),
            pickup_longitude=Decimal("28.056700"),
            dropoff_latitude=Decimal("-25.747900"),
            dropoff_longitude=Decimal("28.229300"),
            customer_id=owner.id,
            assigned_driver_id=driver.id if driver else None,
            distance_km=52.4,
        )
        db_session.add(load)
        db_session.commit()
        db_session.refresh(load)
        return load

    return _factory


@pytest.fixture
def ledger(
    db_session: Session,
    fake_gateway: FakeGateway,
    notifier: RecordingNotifier,
    fixed_clock: Callable[[], datetime],
) -> EscrowLedger:
    return EscrowLedger(
        db_session,
        fake_gateway,
        dispatch=lambda notifications: deliver(notifier, notifications),
        clock=fixed_clock,
        lock_ttl_seconds=120,
    )
