"""Payment request and M-Pesa callback schemas."""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class PayRequest(BaseModel):
    """Body of POST /pay."""

    phone: Optional[str] = None
    plan_id: Optional[int] = None


class CallbackItem(BaseModel):
    """One Name/Value pair from CallbackMetadata.Item."""

    name: str = Field(..., alias="Name")
    value: Any = Field(None, alias="Value")

    model_config = ConfigDict(populate_by_name=True)


class StkCallbackMetadata(BaseModel):
    items: list[CallbackItem] = Field(default_factory=list, alias="Item")

    model_config = ConfigDict(populate_by_name=True)


class StkCallback(BaseModel):
    """The ``Body.stkCallback`` object posted by Daraja."""

    merchant_request_id: Optional[str] = Field(None, alias="MerchantRequestID")
    checkout_request_id: Optional[str] = Field(None, alias="CheckoutRequestID")
    result_code: Optional[int] = Field(None, alias="ResultCode")
    result_desc: Optional[str] = Field(None, alias="ResultDesc")
    metadata: Optional[StkCallbackMetadata] = Field(None, alias="CallbackMetadata")

    model_config = ConfigDict(populate_by_name=True)

    def metadata_value(self, name: str) -> Any:
        if self.metadata is None:
            return None
        for item in self.metadata.items:
            if item.name == name:
                return item.value
        return None

    @property
    def amount(self) -> Optional[int]:
        raw = self.metadata_value("Amount")
        if raw is None:
            return None
        try:
            return int(Decimal(str(raw)))
        except (InvalidOperation, ValueError, OverflowError):
            return None

    @property
    def receipt(self) -> Optional[str]:
        raw = self.metadata_value("MpesaReceiptNumber")
        return str(raw) if raw is not None else None

    @property
    def phone_number(self) -> Optional[str]:
        raw = self.metadata_value("PhoneNumber")
        return str(raw) if raw is not None else None


class CallbackBody(BaseModel):
    stk_callback: StkCallback = Field(..., alias="stkCallback")

    model_config = ConfigDict(populate_by_name=True)


class StkCallbackEnvelope(BaseModel):
    """Top level of the STK push result callback."""

    body: CallbackBody = Field(..., alias="Body")

    model_config = ConfigDict(populate_by_name=True)
