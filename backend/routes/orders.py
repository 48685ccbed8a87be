"""
Order endpoints — submission, lookup, history and operational status updates.
"""

import logging
from datetime import timezone

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from deps import get_dispatcher, get_repository, get_workflow
from domain.errors import DispatchError
from domain.responses import error_response, success_response
from models import (
    NotificationOut,
    OrderLineOut,
    OrderOut,
    StatusUpdateRequest,
    SubmitOrderRequest,
    SubmitOrderResponse,
)
from services.notification_service import NotificationDispatcher
from services.order_repository import OrderRepository
from services.order_workflow import OrderLineRequest, OrderRequest, OrderSubmissionWorkflow
from utils.phone import validated_phone_query

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["orders"])


def _iso(moment) -> str | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


def serialize_order(order) -> dict:
    return OrderOut(
        id=order.id,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        total_amount=order.total_amount,
        status=order.status,
        daily_sequence=order.daily_sequence,
        created_at=_iso(order.created_at),
        items=[
            OrderLineOut(
                menu_item_id=i.menu_item_id,
                item_name_fr=i.item_name_fr,
                item_name_ar=i.item_name_ar,
                quantity=i.quantity,
                unit_price=i.unit_price,
            )
            for i in order.items
        ],
    ).model_dump(by_alias=True)


def serialize_notification(record) -> dict:
    return NotificationOut(
        id=record.id,
        order_id=record.order_id,
        recipient_phone=record.recipient_phone,
        message_type=record.message_type,
        template_name=record.template_name,
        status=record.status,
        twilio_message_sid=record.twilio_message_sid,
        twilio_error_code=record.twilio_error_code,
        twilio_error_message=record.twilio_error_message,
        created_at=_iso(record.created_at),
        sent_at=_iso(record.sent_at),
    ).model_dump(by_alias=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_order(
    request: SubmitOrderRequest,
    workflow: OrderSubmissionWorkflow = Depends(get_workflow),
):
    """Place an order. WhatsApp delivery problems never fail this call."""
    result = await workflow.submit(
        OrderRequest(
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            lines=[
                OrderLineRequest(
                    menu_item_id=i.menu_item_id,
                    item_name_fr=i.item_name_fr,
                    item_name_ar=i.item_name_ar,
                    quantity=i.quantity,
                    unit_price=i.unit_price,
                )
                for i in request.items
            ],
            claimed_total=request.total_amount,
        )
    )

    if not result.success:
        content = error_response(result.error_kind.value, result.reason, {"state": result.state.value})
        content["reason"] = result.reason
        return JSONResponse(status_code=result.error.status_code, content=content)

    return success_response(
        data=SubmitOrderResponse(
            order_id=result.order_id,
            daily_sequence=result.daily_sequence,
        ).model_dump(by_alias=True)
    )


@router.get("")
async def order_history(
    phone: str = Depends(validated_phone_query),
    limit: int = Query(50, ge=1, le=200),
    repository: OrderRepository = Depends(get_repository),
):
    """A customer's orders, most recent first."""
    orders = await repository.get_order_history(phone, limit=limit)
    return success_response(
        data={"phone": phone, "orders": [serialize_order(o) for o in orders]},
        meta={"total": len(orders)},
    )


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    repository: OrderRepository = Depends(get_repository),
):
    order = await repository.get_order(order_id)
    return success_response(data=serialize_order(order))


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    repository: OrderRepository = Depends(get_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Move an order along (confirmed → ready → completed, or cancelled)."""
    order = await repository.transition_status(order_id, request.status)

    notification = "skipped"
    if request.notify:
        try:
            await dispatcher.send_status_update(order, request.status)
            notification = "sent"
        except DispatchError as e:
            logger.error(f"Status update WhatsApp failed for order {order_id}: {e}")
            notification = "failed"

    order = await repository.get_order(order_id)
    return success_response(data=serialize_order(order), meta={"notification": notification})


@router.get("/{order_id}/notifications")
async def order_notifications(
    order_id: str,
    repository: OrderRepository = Depends(get_repository),
):
    """WhatsApp audit trail for one order."""
    await repository.get_order(order_id)
    records = await repository.get_notification_records(order_id)
    return success_response(
        data=[serialize_notification(r) for r in records],
        meta={"total": len(records)},
    )
