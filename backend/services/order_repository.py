"""
Order repository — persisted orders, order lines and the WhatsApp audit log.

Every method opens its own session and commits before returning, so each
step of the submission saga is durable on its own and a later failure can
only be undone by an explicit compensating call (delete_order).

SQLAlchemy failures are translated to StorageError; callers never see
driver exceptions.
"""
import logging
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from db_models import Order, OrderItem, WhatsAppMessage, utcnow
from domain.constants import ALLOWED_STATUS_TRANSITIONS
from domain.enums import DeliveryStatus, OrderStatus
from domain.errors import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)


class OrderRepository:
    """Storage collaborator for the submission workflow and the dispatcher."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Counting ────────────────────────────────────────────────────

    async def count_orders_since(self, since: datetime) -> int:
        """Number of orders created at or after `since` (naive UTC)."""
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    select(func.count(Order.id)).where(Order.created_at >= since)
                )
                return res.scalar_one()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not count orders: {e}") from e

    async def count_orders_for_phone(self, phone: str, since: datetime) -> int:
        """Number of orders from one canonical phone created at or after `since`."""
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    select(func.count(Order.id)).where(
                        Order.customer_phone == phone,
                        Order.created_at >= since,
                    )
                )
                return res.scalar_one()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not count orders for phone: {e}") from e

    # ── Writes ──────────────────────────────────────────────────────

    async def create_order(
        self,
        *,
        customer_name: str,
        customer_phone: str,
        total_amount: int,
        daily_sequence: int | None = None,
    ) -> Order:
        """Insert an order header in "pending" status."""
        order = Order(
            customer_name=customer_name,
            customer_phone=customer_phone,
            total_amount=total_amount,
            status=OrderStatus.PENDING.value,
            daily_sequence=daily_sequence,
        )
        try:
            async with self._session_factory() as db:
                db.add(order)
                await db.commit()
                await db.refresh(order)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create order: {e}") from e
        return order

    async def create_order_lines(self, order_id: str, lines: list[dict]) -> list[OrderItem]:
        """
        Insert all lines of one order as a single batch.

        lines: [{menu_item_id, item_name_fr, item_name_ar, quantity, unit_price}]
        """
        items = [
            OrderItem(
                order_id=order_id,
                menu_item_id=line["menu_item_id"],
                item_name_fr=line["item_name_fr"],
                item_name_ar=line["item_name_ar"],
                quantity=line["quantity"],
                unit_price=line["unit_price"],
            )
            for line in lines
        ]
        try:
            async with self._session_factory() as db:
                db.add_all(items)
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create order lines for {order_id}: {e}") from e
        return items

    async def update_order_status(self, order_id: str, new_status: OrderStatus) -> None:
        """Set an order's status without transition checks."""
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(status=OrderStatus(new_status).value, updated_at=utcnow())
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not update status of {order_id}: {e}") from e
        if res.rowcount == 0:
            raise NotFoundError("Order", order_id)

    async def transition_status(self, order_id: str, new_status: OrderStatus) -> Order:
        """
        Move an order along its operational lifecycle.

        Raises:
            NotFoundError for an unknown order
            ValidationError when the transition is not allowed
        """
        new_status = OrderStatus(new_status)
        try:
            async with self._session_factory() as db:
                order = await db.get(Order, order_id)
                if not order:
                    raise NotFoundError("Order", order_id)
                current = OrderStatus(order.status)
                if new_status not in ALLOWED_STATUS_TRANSITIONS[current]:
                    raise ValidationError(
                        f"Cannot move order from {current.value} to {new_status.value}",
                        field="status",
                    )
                order.status = new_status.value
                order.updated_at = utcnow()
                await db.commit()
                await db.refresh(order)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not update status of {order_id}: {e}") from e
        return order

    async def delete_order(self, order_id: str) -> None:
        """Delete an order and its lines (compensation only)."""
        try:
            async with self._session_factory() as db:
                await db.execute(delete(OrderItem).where(OrderItem.order_id == order_id))
                await db.execute(delete(Order).where(Order.id == order_id))
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not delete order {order_id}: {e}") from e

    # ── Reads ───────────────────────────────────────────────────────

    async def get_order(self, order_id: str) -> Order:
        """Fetch one order with its lines loaded."""
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    select(Order)
                    .options(selectinload(Order.items))
                    .where(Order.id == order_id)
                )
                order = res.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load order {order_id}: {e}") from e
        if not order:
            raise NotFoundError("Order", order_id)
        return order

    async def list_order_lines(self, order_id: str) -> list[OrderItem]:
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    select(OrderItem)
                    .where(OrderItem.order_id == order_id)
                    .order_by(OrderItem.id)
                )
                return list(res.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load lines of {order_id}: {e}") from e

    async def get_order_history(self, phone: str, limit: int = 50) -> list[Order]:
        """Orders for one canonical phone with their lines, most recent first."""
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    select(Order)
                    .options(selectinload(Order.items))
                    .where(Order.customer_phone == phone)
                    .order_by(Order.created_at.desc())
                    .limit(limit)
                )
                return list(res.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load order history: {e}") from e

    # ── WhatsApp audit log ──────────────────────────────────────────

    async def create_notification_record(
        self,
        *,
        order_id: str | None,
        recipient_phone: str,
        message_type: str,
        template_name: str | None,
        message_content: str | None,
    ) -> WhatsAppMessage:
        """Write a "pending" record before the provider is called."""
        record = WhatsAppMessage(
            order_id=order_id,
            recipient_phone=recipient_phone,
            message_type=message_type,
            template_name=template_name,
            message_content=message_content,
            status=DeliveryStatus.PENDING.value,
        )
        try:
            async with self._session_factory() as db:
                db.add(record)
                await db.commit()
                await db.refresh(record)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not log WhatsApp message: {e}") from e
        return record

    async def mark_notification_sent(self, record_id: int, message_sid: str) -> None:
        await self._finish_notification(
            record_id,
            status=DeliveryStatus.SENT.value,
            twilio_message_sid=message_sid,
            sent_at=utcnow(),
        )

    async def mark_notification_failed(
        self, record_id: int, error_code: str | None, error_message: str | None
    ) -> None:
        await self._finish_notification(
            record_id,
            status=DeliveryStatus.FAILED.value,
            twilio_error_code=error_code,
            twilio_error_message=error_message,
        )

    async def _finish_notification(self, record_id: int, **values) -> None:
        # Only a pending record may be finished, so each one changes exactly once.
        try:
            async with self._session_factory() as db:
                await db.execute(
                    update(WhatsAppMessage)
                    .where(
                        WhatsAppMessage.id == record_id,
                        WhatsAppMessage.status == DeliveryStatus.PENDING.value,
                    )
                    .values(**values)
                )
                await db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Could not update WhatsApp message {record_id}: {e}") from e

    async def get_notification_records(self, order_id: str) -> list[WhatsAppMessage]:
        try:
            async with self._session_factory() as db:
                res = await db.execute(
                    select(WhatsAppMessage)
                    .where(WhatsAppMessage.order_id == order_id)
                    .order_by(WhatsAppMessage.id)
                )
                return list(res.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Could not load WhatsApp messages for {order_id}: {e}") from e
