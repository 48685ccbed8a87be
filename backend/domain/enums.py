"""
Domain enums (minimal set used for clarity in services).
"""

from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MessageKind(str, Enum):
    TEMPLATE = "template"
    SESSION = "session"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class SubmissionState(str, Enum):
    """Per-attempt states of the order submission workflow."""
    VALIDATING = "validating"
    RATE_CHECKING = "rate_checking"
    CREATING_ORDER = "creating_order"
    CREATING_LINES = "creating_lines"
    CONFIRMING = "confirming"
    NOTIFYING = "notifying"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    RATE_LIMIT = "rate_limit"
    STORAGE = "storage"
