"""
WhatsApp message texts for order confirmations and status updates.

French ("fr") and Arabic ("ar") variants. The status texts are what customers
receive when the kitchen moves an order along, so their wording is part of
the service's external behaviour.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from config import Settings
from domain.constants import ORDER_REF_LENGTH
from domain.enums import OrderStatus
from utils.phone import format_phone_for_display

STATUS_MESSAGES = {
    OrderStatus.CONFIRMED: {
        "fr": "✅ Votre commande a été confirmée et est en préparation!",
        "ar": "✅ تم تأكيد طلبك وجاري التحضير!",
    },
    OrderStatus.READY: {
        "fr": "🎉 Votre commande est prête! Vous pouvez venir la récupérer.",
        "ar": "🎉 طلبك جاهز! يمكنك استلامه.",
    },
    OrderStatus.COMPLETED: {
        "fr": "✅ Merci! Votre commande a été complétée avec succès.",
        "ar": "✅ شكرا! تم إكمال طلبك بنجاح.",
    },
    OrderStatus.CANCELLED: {
        "fr": "❌ Votre commande a été annulée. Contactez-nous pour plus d'informations.",
        "ar": "❌ تم إلغاء طلبك. اتصل بنا للمزيد من المعلومات.",
    },
}

_LABELS = {
    "fr": {
        "title": "🍽️ *Nouvelle commande reçue!*",
        "order": "📋 *Commande:*",
        "customer": "👤 *Client:*",
        "phone": "📱 *Téléphone:*",
        "items": "📝 *Articles:*",
        "total": "💰 *Total:*",
        "time": "⏰ *Heure:*",
        "thanks": "Merci pour votre commande! 🙏",
        "update": "📋 *Mise à jour de commande",
    },
    "ar": {
        "title": "🍽️ *طلب جديد!*",
        "order": "📋 *رقم الطلب:*",
        "customer": "👤 *العميل:*",
        "phone": "📱 *الهاتف:*",
        "items": "📝 *الطلبات:*",
        "total": "💰 *الإجمالي:*",
        "time": "⏰ *الوقت:*",
        "thanks": "شكرا لطلبك! 🙏",
        "update": "📋 *تحديث الطلب",
    },
}


def _language(language: str) -> str:
    return language if language in _LABELS else "fr"


def restaurant_label(settings: Settings, language: str) -> str:
    """Arabic messages are signed with the Arabic name when one is set."""
    if language == "ar" and settings.restaurant_name_ar:
        return settings.restaurant_name_ar
    return settings.restaurant_name


def order_reference(order_id: str, daily_sequence: int | None = None) -> str:
    """Daily number when one exists, else the id's last 8 characters."""
    if daily_sequence is not None:
        return str(daily_sequence)
    return order_id[-ORDER_REF_LENGTH:]


def _local_time(moment: datetime | None, tz_name: str) -> str:
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name)).strftime("%d/%m/%Y %H:%M")


def render_order_confirmation(
    order,
    lines,
    settings: Settings,
    *,
    daily_sequence: int | None = None,
    language: str | None = None,
) -> str:
    """
    Session-message body confirming a freshly placed order.

    `order` needs id, customer_name, customer_phone, total_amount and
    created_at; each line needs quantity, unit_price, item_name_fr and
    item_name_ar.
    """
    lang = _language(language or settings.notification_language)
    labels = _LABELS[lang]
    currency = settings.currency_label

    item_lines = "\n".join(
        f"{line.quantity}x {line.item_name_ar if lang == 'ar' else line.item_name_fr}"
        f" - {line.quantity * line.unit_price} {currency}"
        for line in lines
    )

    return "\n".join([
        labels["title"],
        "",
        f"{labels['order']} #{order_reference(order.id, daily_sequence)}",
        f"{labels['customer']} {order.customer_name}",
        f"{labels['phone']} {format_phone_for_display(order.customer_phone)}",
        "",
        labels["items"],
        item_lines,
        "",
        f"{labels['total']} {order.total_amount} {currency}",
        f"{labels['time']} {_local_time(getattr(order, 'created_at', None), settings.business_timezone)}",
        "",
        labels["thanks"],
    ])


def render_status_update(
    order_id: str,
    status: OrderStatus | str,
    settings: Settings,
    *,
    language: str | None = None,
) -> str:
    """Status-change notice; unknown statuses fall back to the confirmed text."""
    lang = _language(language or settings.notification_language)
    try:
        texts = STATUS_MESSAGES.get(OrderStatus(status), STATUS_MESSAGES[OrderStatus.CONFIRMED])
    except ValueError:
        texts = STATUS_MESSAGES[OrderStatus.CONFIRMED]

    return "\n".join([
        f"{_LABELS[lang]['update']} #{order_reference(order_id)}*",
        "",
        texts[lang],
        "",
        f"🍽️ *{restaurant_label(settings, lang)}*",
    ])


def template_variables(order, settings: Settings) -> dict:
    """Positional variables for the approved confirmation template."""
    return {
        "1": order.customer_name or "Customer",
        "2": f"{order.total_amount or 0} {settings.currency_label}",
        "3": order.id or "Unknown",
    }
