"""Audit logging helper utilities."""
from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from freightpay.models.audit import AuditLog
from freightpay.utils.time import utcnow


SENSITIVE_KEYS = {
    "email",
    "email_address",
    "card_number",
    "transaction_id",
    "pf_payment_id",
    "driver_payout_transaction_id",
    "refund_transaction_id",
    "capture_transaction_id",
    "gateway_reference",
}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None

    if key == "card_number":
        stripped = str(value).replace(" ", "")
        if len(stripped) <= 4:
            return f"***{stripped}"
        return f"***{stripped[-4:]}"

    if key in {"email", "email_address"}:
        text = str(value)
        if "@" in text:
            _, domain = text.split("@", 1)
            return f"***@{domain}"
        return "***"

    text = str(value)
    if len(text) <= 6:
        return "***"
    return f"***{text[-4:]}"


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a copy of ``data`` with obvious PII fields masked."""

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            masked_value = _mask_value(key, value) if key in SENSITIVE_KEYS else value
            sanitized[key] = sanitize_payload_for_audit(masked_value)
        return sanitized

    if isinstance(data, list):
        return [sanitize_payload_for_audit(item) for item in data]

    return data


def log_audit(
    db: Session,
    *,
    actor: str,
    action: str,
    entity: str,
    entity_id: str,
    data: dict | None = None,
) -> None:
    """Stage an audit entry in the shared AuditLog table (committed by the caller)."""

    db.add(
        AuditLog(
            actor=actor,
            action=action,
            entity=entity,
            entity_id=entity_id,
            data_json=sanitize_payload_for_audit(data or {}),
            at=utcnow(),
        )
    )
