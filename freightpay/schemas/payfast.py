"""PayFast wire schemas."""
from pydantic import BaseModel, ConfigDict, Field

from freightpay.utils.signature import Field as SignedField

ITN_FIELDS: tuple[str, ...] = (
    "m_payment_id",
    "pf_payment_id",
    "payment_status",
    "item_name",
    "item_description",
    "amount_gross",
    "amount_fee",
    "amount_net",
    "custom_str1",
    "custom_str2",
    "custom_str3",
    "name_first",
    "name_last",
    "email_address",
    "merchant_id",
)

REQUEST_FIELDS: tuple[str, ...] = (
    "merchant_id",
    "merchant_key",
    "return_url",
    "cancel_url",
    "notify_url",
    "name_first",
    "name_last",
    "email_address",
    "cell_number",
    "m_payment_id",
    "amount",
    "item_name",
    "item_description",
    "custom_str1",
    "custom_str2",
    "custom_str3",
    "email_confirmation",
    "confirmation_address",
    "payment_method",
)


class PayFastStatus:
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"


class GatewayNotification(BaseModel):
    """Untrusted ITN fields as posted by the gateway (signature carried separately).

    ``custom_str1`` carries the load id, ``custom_str2`` the customer id and
    ``custom_str3`` the driver id.
    """

    m_payment_id: str = ""
    pf_payment_id: str = ""
    payment_status: str = ""
    item_name: str = ""
    item_description: str = ""
    amount_gross: str = ""
    amount_fee: str = ""
    amount_net: str = ""
    custom_str1: str = ""
    custom_str2: str = ""
    custom_str3: str = ""
    name_first: str = ""
    name_last: str = ""
    email_address: str = ""
    merchant_id: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_form(cls, form) -> "GatewayNotification":
        return cls(**{name: str(form.get(name) or "") for name in ITN_FIELDS})

    def signing_fields(self) -> list[SignedField]:
        return [(name, getattr(self, name)) for name in ITN_FIELDS]

    @property
    def is_complete(self) -> bool:
        return self.payment_status == PayFastStatus.COMPLETE

    @property
    def is_failed(self) -> bool:
        return self.payment_status == PayFastStatus.FAILED

    @property
    def is_cancelled(self) -> bool:
        return self.payment_status == PayFastStatus.CANCELLED


class PaymentRequest(BaseModel):
    """Outbound checkout request handed to the gateway's process URL."""

    merchant_id: str
    merchant_key: str
    return_url: str
    cancel_url: str
    notify_url: str
    name_first: str = ""
    name_last: str = ""
    email_address: str = ""
    cell_number: str = ""
    m_payment_id: str
    amount: str
    item_name: str
    item_description: str = ""
    custom_str1: str = ""
    custom_str2: str = ""
    custom_str3: str = ""
    email_confirmation: str = "1"
    confirmation_address: str = ""
    payment_method: str = "cc"
    signature: str = ""

    def signing_fields(self) -> list[SignedField]:
        return [(name, getattr(self, name)) for name in REQUEST_FIELDS]

    def form_fields(self) -> list[SignedField]:
        """Non-empty form fields in wire order, signature last."""

        fields = [(name, value) for name, value in self.signing_fields() if value]
        fields.append(("signature", self.signature))
        return fields


class CheckoutForm(BaseModel):
    payment_id: str
    process_url: str
    form_fields: list[tuple[str, str]] = Field(serialization_alias="fields")
    html: str
