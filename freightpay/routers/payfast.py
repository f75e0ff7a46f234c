"""PayFast ITN webhook and browser return routes."""
from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
from starlette.datastructures import FormData

from freightpay.config import Settings, get_settings
from freightpay.db import get_db
from freightpay.dependencies import get_escrow_ledger, get_payfast_config, get_payfast_http_client
from freightpay.schemas.payfast import GatewayNotification
from freightpay.services.escrow import EscrowLedger
from freightpay.services.itn import NotificationProcessor
from freightpay.services.payfast import NotificationValidator, PayFastConfig
from freightpay.utils.errors import AuthFailure, PaymentNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payfast", tags=["payfast"])


async def _notification_form(request: Request) -> FormData:
    return await request.form()


@router.post("/notify", status_code=status.HTTP_200_OK)
def payfast_notify(
    form: FormData = Depends(_notification_form),
    db: Session = Depends(get_db),
    config: PayFastConfig = Depends(get_payfast_config),
    http_client: httpx.Client = Depends(get_payfast_http_client),
    ledger: EscrowLedger = Depends(get_escrow_ledger),
) -> dict[str, str]:
    notification = GatewayNotification.from_form(form)
    supplied_signature = form.get("signature")
    logger.info(
        "PayFast ITN received",
        extra={"payment_id": notification.m_payment_id, "payment_status": notification.payment_status},
    )

    validator = NotificationValidator(config, db, http_client)
    validator.validate(notification, str(supplied_signature) if supplied_signature else None)

    try:
        outcome = NotificationProcessor(ledger).apply(notification)
    except PaymentNotFound as exc:
        raise AuthFailure() from exc

    logger.info(
        "PayFast ITN processed",
        extra={
            "payment_id": outcome.payment_id,
            "status": outcome.status.value,
            "transitioned": outcome.transitioned,
            "detail": outcome.detail,
        },
    )
    return {"ok": "true"}


def _dashboard_redirect(settings: Settings, outcome: str, payment_id: str) -> RedirectResponse:
    query = urlencode({"payment": outcome, "id": payment_id})
    return RedirectResponse(f"{settings.DASHBOARD_PATH}?{query}", status_code=status.HTTP_302_FOUND)


@router.get("/return")
def payfast_return(m_payment_id: str = "", settings: Settings = Depends(get_settings)) -> RedirectResponse:
    logger.info("PayFast checkout returned", extra={"payment_id": m_payment_id})
    return _dashboard_redirect(settings, "success", m_payment_id)


@router.get("/cancel")
def payfast_cancel(m_payment_id: str = "", settings: Settings = Depends(get_settings)) -> RedirectResponse:
    logger.warning("PayFast checkout cancelled", extra={"payment_id": m_payment_id})
    return _dashboard_redirect(settings, "cancelled", m_payment_id)


__all__ = ["router"]
