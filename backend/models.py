"""
Pydantic models for request/response validation.

Only shape is checked here (types, required fields, simple bounds). Business
rules (phone formats, totals, rate limits) live in the services so the same
rules apply whether the workflow is called over HTTP or as a library.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from domain.enums import MessageKind, OrderStatus


class ApiBase(BaseModel):
    """Shared base — allows construction by Python name or camelCase alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Order Submission ────────────────────────────────────────────────

class OrderLineIn(ApiBase):
    menu_item_id: str = Field(..., alias="menuItemId", min_length=1, max_length=64)
    item_name_fr: str = Field(..., alias="itemNameFr", max_length=200)
    item_name_ar: str = Field("", alias="itemNameAr", max_length=200)
    quantity: int
    unit_price: int = Field(..., alias="unitPrice")


class SubmitOrderRequest(ApiBase):
    """What the cart sends when the customer confirms."""
    customer_name: str = Field(..., alias="customerName", max_length=200)
    customer_phone: str = Field(..., alias="customerPhone", max_length=40)
    items: List[OrderLineIn]
    total_amount: int = Field(..., alias="totalAmount")


class SubmitOrderResponse(ApiBase):
    order_id: str = Field(..., alias="orderId")
    daily_sequence: Optional[int] = Field(None, alias="dailySequence")


# ── Order Reads ─────────────────────────────────────────────────────

class OrderLineOut(ApiBase):
    menu_item_id: str = Field(..., alias="menuItemId")
    item_name_fr: str = Field(..., alias="itemNameFr")
    item_name_ar: str = Field(..., alias="itemNameAr")
    quantity: int
    unit_price: int = Field(..., alias="unitPrice")


class OrderOut(ApiBase):
    id: str
    customer_name: str = Field(..., alias="customerName")
    customer_phone: str = Field(..., alias="customerPhone")
    total_amount: int = Field(..., alias="totalAmount")
    status: str
    daily_sequence: Optional[int] = Field(None, alias="dailySequence")
    created_at: Optional[str] = Field(None, alias="createdAt")
    items: List[OrderLineOut] = Field(default_factory=list)


class StatusUpdateRequest(ApiBase):
    status: OrderStatus
    notify: bool = True


# ── WhatsApp ────────────────────────────────────────────────────────

class SendMessageRequest(ApiBase):
    """Direct WhatsApp send, session text or approved template."""
    to: str = Field(..., max_length=40)
    type: MessageKind = MessageKind.SESSION
    message: str = Field("", max_length=4096)
    template_name: Optional[str] = Field(None, alias="templateName", max_length=100)
    order_id: Optional[str] = Field(None, alias="orderId", max_length=36)


class NotificationOut(ApiBase):
    id: int
    order_id: Optional[str] = Field(None, alias="orderId")
    recipient_phone: str = Field(..., alias="recipientPhone")
    message_type: str = Field(..., alias="messageType")
    template_name: Optional[str] = Field(None, alias="templateName")
    status: str
    twilio_message_sid: Optional[str] = Field(None, alias="messageSid")
    twilio_error_code: Optional[str] = Field(None, alias="errorCode")
    twilio_error_message: Optional[str] = Field(None, alias="errorMessage")
    created_at: Optional[str] = Field(None, alias="createdAt")
    sent_at: Optional[str] = Field(None, alias="sentAt")
