"""FastAPI dependencies wiring services to their collaborators."""
from __future__ import annotations

from collections.abc import Generator

import httpx
from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from freightpay.config import Settings, get_settings
from freightpay.db import get_db
from freightpay.services.distance import DistanceEstimator
from freightpay.services.escrow import EscrowLedger
from freightpay.services.gateway import PaymentGateway, SimulatedGateway
from freightpay.services.notifier import LoggingNotifier, Notifier, UserNotification, deliver
from freightpay.services.payfast import PayFastConfig
from freightpay.services.pricing import PricingEngine
from freightpay.services.rate_table import RateTable


def get_payment_gateway(settings: Settings = Depends(get_settings)) -> PaymentGateway:
    mode = settings.GATEWAY_MODE.lower()
    if mode == "simulated":
        return SimulatedGateway()
    raise RuntimeError(f"Unsupported GATEWAY_MODE: {settings.GATEWAY_MODE!r}")


def get_notifier() -> Notifier:
    return LoggingNotifier()


def get_payfast_config(settings: Settings = Depends(get_settings)) -> PayFastConfig:
    return PayFastConfig.from_settings(settings)


def get_payfast_http_client(
    settings: Settings = Depends(get_settings),
) -> Generator[httpx.Client, None, None]:
    with httpx.Client(timeout=settings.PAYFAST_TIMEOUT_SECONDS) as client:
        yield client


def get_routing_http_client(
    settings: Settings = Depends(get_settings),
) -> Generator[httpx.Client, None, None]:
    with httpx.Client(timeout=settings.ROUTING_TIMEOUT_SECONDS) as client:
        yield client


def get_distance_estimator(
    settings: Settings = Depends(get_settings),
    client: httpx.Client = Depends(get_routing_http_client),
) -> DistanceEstimator:
    return DistanceEstimator.from_settings(settings, client)


def get_pricing_engine(
    db: Session = Depends(get_db),
    estimator: DistanceEstimator = Depends(get_distance_estimator),
    settings: Settings = Depends(get_settings),
) -> PricingEngine:
    return PricingEngine(
        RateTable.from_db(db),
        estimator,
        timezone=settings.PRICING_TIMEZONE,
        default_category=settings.PRICING_DEFAULT_CATEGORY,
    )


def get_escrow_ledger(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> EscrowLedger:
    """Ledger whose user notifications are sent after the response is returned."""

    def dispatch(notifications: list[UserNotification]) -> None:
        if notifications:
            background_tasks.add_task(deliver, notifier, notifications)

    return EscrowLedger(
        db,
        gateway,
        dispatch=dispatch,
        lock_ttl_seconds=settings.PAYMENT_LOCK_TTL_SECONDS,
        actor="api",
    )


__all__ = [
    "get_distance_estimator",
    "get_escrow_ledger",
    "get_notifier",
    "get_payfast_config",
    "get_payfast_http_client",
    "get_payment_gateway",
    "get_pricing_engine",
    "get_routing_http_client",
]
