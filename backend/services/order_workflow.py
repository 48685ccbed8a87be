"""
Order submission workflow — one customer order, end to end.

    validating → rate_checking → creating_order → creating_lines
               → confirming → notifying → done

Failure exits:
    rejected — bad input or too many recent orders; nothing was written
    failed   — the order header or its lines could not be stored; a header
               whose lines failed is deleted again (compensation)

The steps are a best-effort saga, not one transaction:
    - a failed status update (pending → confirmed) is logged, the order
      still counts as placed
    - a failed WhatsApp confirmation is logged, never un-places the order

Concurrency: the per-phone limit is count-then-insert with no lock, so two
simultaneous submissions from one phone can both pass the check. The limit
is a best-effort throttle, not a guarantee.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import Settings
from domain.enums import ErrorKind, OrderStatus, SubmissionState
from domain.errors import (
    CompensationError,
    DispatchError,
    DomainError,
    RateLimitError,
    StorageError,
    ValidationError,
)
from services.notification_service import NotificationDispatcher
from services.order_repository import OrderRepository
from utils.phone import mask_phone, normalize_phone

logger = logging.getLogger(__name__)


@dataclass
class OrderLineRequest:
    menu_item_id: str
    item_name_fr: str
    item_name_ar: str
    quantity: int
    unit_price: int


@dataclass
class OrderRequest:
    customer_name: str
    customer_phone: str  # raw, as typed
    lines: list[OrderLineRequest]
    claimed_total: int


@dataclass
class SubmissionResult:
    success: bool
    state: SubmissionState
    order_id: Optional[str] = None
    daily_sequence: Optional[int] = None
    reason: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[DomainError] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        if self.success:
            data = {"success": True, "orderId": self.order_id}
            if self.daily_sequence is not None:
                data["dailySequence"] = self.daily_sequence
            return data
        return {"success": False, "reason": self.reason}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class OrderSubmissionWorkflow:

    def __init__(
        self,
        repository: OrderRepository,
        dispatcher: NotificationDispatcher,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._repository = repository
        self._dispatcher = dispatcher
        self._settings = settings
        self._clock = clock

    # ── Steps ───────────────────────────────────────────────────────

    def validate(self, request: OrderRequest) -> tuple[str, str, list[dict], int]:
        """
        Check the request and return (name, canonical phone, lines, total).

        The total is recomputed from the lines; a claimed total that
        disagrees is rejected rather than trusted.

        Raises:
            ValidationError (InvalidPhoneError for the phone)
        """
        name = (request.customer_name or "").strip()
        if not name:
            raise ValidationError("Customer name is required", field="customer_name")

        phone = normalize_phone(request.customer_phone)

        if not request.lines:
            raise ValidationError("Order must contain at least one item", field="lines")

        lines = []
        for index, line in enumerate(request.lines):
            where = f"lines[{index}]"
            if not line.menu_item_id:
                raise ValidationError("Menu item id is required", field=f"{where}.menu_item_id")
            if not (line.item_name_fr or "").strip():
                raise ValidationError("Item name is required", field=f"{where}.item_name_fr")
            if not isinstance(line.quantity, int) or isinstance(line.quantity, bool) or line.quantity <= 0:
                raise ValidationError("Quantity must be a positive integer", field=f"{where}.quantity")
            if not isinstance(line.unit_price, int) or isinstance(line.unit_price, bool) or line.unit_price < 0:
                raise ValidationError("Unit price must be a non-negative integer", field=f"{where}.unit_price")
            lines.append({
                "menu_item_id": str(line.menu_item_id),
                "item_name_fr": line.item_name_fr.strip(),
                "item_name_ar": (line.item_name_ar or "").strip(),
                "quantity": line.quantity,
                "unit_price": line.unit_price,
            })

        total = sum(line["quantity"] * line["unit_price"] for line in lines)
        if request.claimed_total is None or request.claimed_total < 0:
            raise ValidationError("Total must be non-negative", field="claimed_total")
        if request.claimed_total != total:
            raise ValidationError(
                f"Total {request.claimed_total} does not match the items ({total})",
                field="claimed_total",
                details={"claimed": request.claimed_total, "computed": total},
            )
        return name, phone, lines, total

    async def check_rate_limit(self, phone: str) -> None:
        """
        Reject a phone that already placed the maximum number of orders
        within the trailing window.

        Raises:
            RateLimitError, or StorageError if the count cannot be read
        """
        window = timedelta(minutes=self._settings.rate_limit_window_minutes)
        since = _naive_utc(self._clock() - window)
        recent = await self._repository.count_orders_for_phone(phone, since)
        if recent >= self._settings.rate_limit_max_orders:
            raise RateLimitError(
                f"Too many orders: at most {self._settings.rate_limit_max_orders} "
                f"per {self._settings.rate_limit_window_minutes} minutes. Please try again later.",
                details={"recent_orders": recent},
            )

    async def next_daily_sequence(self) -> Optional[int]:
        """
        Advisory "order N of the day" number: orders since local midnight + 1.

        Not unique under concurrency, and never blocks a submission: a failed
        count only leaves the number unset.
        """
        if not self._settings.daily_numbering_enabled:
            return None
        try:
            tz = ZoneInfo(self._settings.business_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            logger.error(f"Unknown business timezone {self._settings.business_timezone!r}, no daily number: {e}")
            return None
        local_now = self._clock().astimezone(tz)
        midnight = datetime.combine(local_now.date(), time.min, tzinfo=tz)
        try:
            count = await self._repository.count_orders_since(_naive_utc(midnight))
        except StorageError as e:
            logger.warning(f"Daily order count unavailable, continuing without number: {e}")
            return None
        return count + 1

    async def _compensate(self, order_id: str) -> None:
        try:
            await self._repository.delete_order(order_id)
            logger.info(f"Compensation: deleted order {order_id} after line failure")
        except Exception as e:
            err = CompensationError(
                f"Could not delete order {order_id} after line failure: {e}",
                details={"order_id": order_id},
            )
            logger.error(str(err))

    # ── Entry point ─────────────────────────────────────────────────

    async def submit(self, request: OrderRequest) -> SubmissionResult:
        """
        Place one order. Never raises for expected failures; the outcome is
        described by the returned SubmissionResult.
        """
        state = SubmissionState.VALIDATING
        try:
            name, phone, lines, total = self.validate(request)
        except ValidationError as e:
            logger.info(f"Order rejected ({e.field}): {e.message}")
            return SubmissionResult(
                success=False,
                state=SubmissionState.REJECTED,
                reason=e.message,
                error_kind=ErrorKind.VALIDATION,
                error=e,
            )

        state = SubmissionState.RATE_CHECKING
        try:
            await self.check_rate_limit(phone)
        except RateLimitError as e:
            logger.warning(f"Order rejected: rate limit reached for {mask_phone(phone)}")
            return SubmissionResult(
                success=False,
                state=SubmissionState.REJECTED,
                reason=e.message,
                error_kind=ErrorKind.RATE_LIMIT,
                error=e,
            )
        except StorageError as e:
            logger.error(f"Order failed at {state.value}: {e}")
            return self._failed("Could not place the order, please try again", e)

        daily_sequence = await self.next_daily_sequence()

        state = SubmissionState.CREATING_ORDER
        try:
            order = await self._repository.create_order(
                customer_name=name,
                customer_phone=phone,
                total_amount=total,
                daily_sequence=daily_sequence,
            )
        except StorageError as e:
            logger.error(f"Order creation error: {e}")
            return self._failed("Could not create the order", e)

        state = SubmissionState.CREATING_LINES
        try:
            items = await self._repository.create_order_lines(order.id, lines)
        except StorageError as e:
            logger.error(f"Order items error for {order.id}: {e}")
            await self._compensate(order.id)
            return self._failed("Could not add the items to the order", e)
        except Exception:
            await self._compensate(order.id)
            raise

        state = SubmissionState.CONFIRMING
        try:
            await self._repository.update_order_status(order.id, OrderStatus.CONFIRMED)
            order.status = OrderStatus.CONFIRMED.value
        except Exception as e:
            logger.error(f"Order status update error for {order.id} (order kept as pending): {e}")

        state = SubmissionState.NOTIFYING
        try:
            await self._dispatcher.send_order_confirmation(order, items, daily_sequence)
        except DispatchError as e:
            logger.error(f"WhatsApp notification failed for order {order.id}: {e}")
        except Exception as e:
            logger.error(f"WhatsApp notification error for order {order.id}: {e}", exc_info=True)

        logger.info(
            f"Order {order.id} placed for {mask_phone(phone)} "
            f"(total={total}, daily_sequence={daily_sequence})"
        )
        return SubmissionResult(
            success=True,
            state=SubmissionState.DONE,
            order_id=order.id,
            daily_sequence=daily_sequence,
        )

    @staticmethod
    def _failed(reason: str, error: StorageError) -> SubmissionResult:
        return SubmissionResult(
            success=False,
            state=SubmissionState.FAILED,
            reason=reason,
            error_kind=ErrorKind.STORAGE,
            error=error,
        )
