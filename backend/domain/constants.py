"""
Domain constants used across services/routers.
"""

from domain.enums import OrderStatus

# Country calling codes accepted for customer phones
ALGERIA_CODE = "213"
MAURITANIA_CODE = "222"

# Twilio addresses WhatsApp recipients as "whatsapp:+<E.164>"
WHATSAPP_ADDRESS_PREFIX = "whatsapp:"

# Operational status transitions (after the submission workflow confirms)
ALLOWED_STATUS_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}

# Short order reference used in messages when no daily number is known
ORDER_REF_LENGTH = 8
