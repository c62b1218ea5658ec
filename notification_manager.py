# notification_manager.py
import asyncio
import logging
import os
import smtplib
from datetime import date, datetime, timedelta
from decimal import Decimal
from email.message import EmailMessage

from aiogram import Bot, html
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from models import Notification, NotificationSettings, Order
from inventory_models import InventoryItem, StockHistory
from websocket_manager import manager

logger = logging.getLogger(__name__)


class EmailNotConfigured(Exception):
    pass


def get_admin_bot() -> Bot | None:
    """Bot for the staff chat, or None when ADMIN_BOT_TOKEN is not set."""
    token = os.environ.get('ADMIN_BOT_TOKEN')
    if not token:
        return None
    return Bot(token=token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))


async def send_admin_chat_message(text: str):
    """Posts a message to ADMIN_CHAT_ID. Failures are logged, never raised."""
    admin_chat_id = os.environ.get('ADMIN_CHAT_ID')
    if not admin_chat_id:
        return
    admin_bot = get_admin_bot()
    if not admin_bot:
        return
    try:
        await admin_bot.send_message(admin_chat_id, text)
    except Exception as e:
        logger.error(f"Could not send message to admin chat {admin_chat_id}: {e}")
    finally:
        await admin_bot.session.close()


async def get_notification_settings(session: AsyncSession) -> NotificationSettings:
    settings = await session.scalar(select(NotificationSettings).order_by(NotificationSettings.id).limit(1))
    if not settings:
        settings = NotificationSettings(email_addresses=[])
        session.add(settings)
        await session.commit()
    return settings


# --- ORDERS ---

async def notify_new_order_to_staff(order: Order):
    status_text = (f"✅ <b>New order {html.quote(order.order_number)}</b>\n\n"
                   f"<b>Type:</b> {html.quote(order.order_type)}\n"
                   f"<b>Items:</b>\n- {html.quote(order.order_instructions or '').replace(' | ', chr(10) + '- ')}\n\n"
                   f"<b>Total:</b> Rs {order.total_amount}\n"
                   f"<b>Status:</b> {order.order_status}")
    await send_admin_chat_message(status_text)
    await manager.broadcast_admin({
        "type": "new_order",
        "order_id": order.id,
        "order_number": order.order_number,
        "total_amount": str(order.total_amount),
    })


async def notify_order_status_change(order: Order, old_status: str, actor_info: str):
    log_message = (
        f"🔄 <b>[Status changed]</b> Order {html.quote(order.order_number)}\n"
        f"<b>By:</b> {html.quote(actor_info)}\n"
        f"<b>Status:</b> {html.quote(old_status)} → {html.quote(order.order_status)}"
    )
    if order.cancellation_reason and order.order_status == "Cancelled":
        log_message += f"\n<b>Reason:</b> {html.quote(order.cancellation_reason)}"
    await send_admin_chat_message(log_message)
    await manager.broadcast_admin({
        "type": "order_status",
        "order_id": order.id,
        "old_status": old_status,
        "new_status": order.order_status,
    })


# --- STOCK ALERTS ---

async def check_low_stock_and_notify(session: AsyncSession, item: InventoryItem) -> Notification | None:
    """
    Creates a low/critical stock notification when current <= minimum.
    Nothing is created while an unread notification of the same type exists.
    """
    current_stock = Decimal(str(item.current_stock or 0))
    minimum_stock = Decimal(str(item.minimum_stock or 0))
    if current_stock > minimum_stock:
        return None

    out_of_stock = current_stock <= 0
    notif_type = 'critical_stock' if out_of_stock else 'low_stock'

    existing = await session.scalar(
        select(Notification.id).where(
            Notification.inventory_item_id == item.id,
            Notification.type == notif_type,
            Notification.is_read == False
        ).limit(1)
    )
    if existing:
        return None

    notification = Notification(
        type=notif_type,
        severity='critical' if out_of_stock else 'warning',
        title='Out of Stock!' if out_of_stock else 'Low Stock Alert',
        message=(f"{item.name} is out of stock!" if out_of_stock
                 else f"{item.name} is running low. Current stock: {current_stock}, Minimum: {minimum_stock}"),
        inventory_item_id=item.id,
        is_read=False,
    )
    session.add(notification)
    await session.commit()
    logger.info(f"Notification '{notif_type}' created for '{item.name}'")

    await handle_new_notification(session, notification, item)
    return notification


async def check_expiring_stock(session: AsyncSession, today: date | None = None) -> list[Notification]:
    """Creates expiry alerts for purchases that expire within expiry_days_before days."""
    today = today or date.today()
    settings = await get_notification_settings(session)
    horizon = today + timedelta(days=settings.expiry_days_before or 7)

    rows = (await session.execute(
        select(StockHistory).where(
            StockHistory.transaction_type == 'purchase',
            StockHistory.expiry_date.is_not(None),
            StockHistory.expiry_date <= horizon,
        ).order_by(StockHistory.expiry_date)
    )).scalars().all()

    created = []
    seen_items = set()
    for row in rows:
        if row.inventory_item_id in seen_items:
            continue
        seen_items.add(row.inventory_item_id)

        existing = await session.scalar(
            select(Notification.id).where(
                Notification.inventory_item_id == row.inventory_item_id,
                Notification.type == 'expiry_alert',
                Notification.is_read == False
            ).limit(1)
        )
        if existing:
            continue

        item = row.inventory_item
        expired = row.expiry_date < today
        batch = f" (batch {row.batch_number})" if row.batch_number else ""
        notification = Notification(
            type='expiry_alert',
            severity='critical' if expired else 'warning',
            title='Stock Expired' if expired else 'Expiry Alert',
            message=(f"{item.name}{batch} expired on {row.expiry_date.isoformat()}" if expired
                     else f"{item.name}{batch} expires on {row.expiry_date.isoformat()}"),
            inventory_item_id=row.inventory_item_id,
            is_read=False,
        )
        session.add(notification)
        await session.commit()
        created.append(notification)
        await handle_new_notification(session, notification, item)

    return created


async def handle_new_notification(session: AsyncSession, notification: Notification, item: InventoryItem | None = None):
    """Fans a fresh notification out to dashboards, the staff chat and e-mail."""
    await manager.broadcast_admin({
        "type": "notification",
        "id": notification.id,
        "notification_type": notification.type,
        "severity": notification.severity,
        "title": notification.title,
        "message": notification.message,
    })
    await send_admin_chat_message(f"⚠️ <b>{html.quote(notification.title)}</b>\n{html.quote(notification.message)}")

    settings = await get_notification_settings(session)
    if not (settings.email_enabled and settings.email_addresses):
        logger.info("E-mail notifications are not configured, skipping e-mail")
        return

    should_send = (
        ('stock' in notification.type and settings.low_stock_alerts) or
        (notification.type == 'expiry_alert' and settings.expiry_alerts)
    )
    if not should_send:
        return

    try:
        await send_email_notification(settings.email_addresses, notification, item)
    except Exception as e:
        logger.error(f"Could not e-mail notification #{notification.id}: {e}")


# --- E-MAIL ---

def build_email_subject(notification) -> str:
    prefix = '🔴 CRITICAL' if notification.severity == 'critical' else '⚠️'
    return f"{prefix} {notification.title}"


def build_email_html(notification, item: InventoryItem | None = None) -> str:
    color = '#dc2626' if notification.severity == 'critical' else '#f59e0b'
    app_url = os.environ.get('APP_URL', 'http://localhost:8000')
    created_at = notification.created_at or datetime.now()

    details = ""
    if item is not None:
        unit = item.unit.abbreviation if item.unit else ''
        details = f"""
        <h3>Item Details:</h3>
        <table style="background:#fff; padding:15px; width:100%;">
            <tr><td><b>Item Name:</b></td><td>{html.quote(item.name)}</td></tr>
            <tr><td><b>SKU:</b></td><td>{html.quote(item.sku or '-')}</td></tr>"""
        if notification.type != 'expiry_alert':
            details += f"""
            <tr><td><b>Current Stock:</b></td><td>{item.current_stock} {unit}</td></tr>
            <tr><td><b>Minimum Stock:</b></td><td>{item.minimum_stock} {unit}</td></tr>"""
        details += "</table>"

    return f"""<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <div style="max-width:600px; margin:0 auto; padding:20px;">
    <div style="background:{color}; color:#fff; padding:20px; border-radius:8px 8px 0 0;">
      <h1 style="margin:0;">{html.quote(notification.title)}</h1>
    </div>
    <div style="background:#f9fafb; padding:20px; border-radius:0 0 8px 8px;">
      <p style="border-left:4px solid {color}; background:#fff; padding:15px;">{html.quote(notification.message)}</p>
      {details}
      <p><strong>Time:</strong> {created_at.strftime('%Y-%m-%d %H:%M')}</p>
      <p style="text-align:center;"><a href="{app_url}/admin/notifications">View in Dashboard</a></p>
    </div>
    <p style="text-align:center; color:#6b7280; font-size:12px;">This is an automated notification from your Inventory Management System.</p>
  </div>
</body>
</html>"""


def _send_smtp(message: EmailMessage, user: str, password: str):
    host = os.environ.get('SMTP_HOST', 'smtp.gmail.com')
    port = int(os.environ.get('SMTP_PORT', '465'))
    with smtplib.SMTP_SSL(host, port, timeout=30) as server:
        server.login(user, password)
        server.send_message(message)


async def send_email_notification(emails: list[str], notification, item: InventoryItem | None = None) -> str:
    """Sends the alert e-mail; returns the Message-ID."""
    user = os.environ.get('EMAIL_USER')
    password = os.environ.get('EMAIL_PASSWORD')
    if not user or not password:
        raise EmailNotConfigured("Email credentials not configured")

    message = EmailMessage()
    message['From'] = f'"Inventory Management System" <{user}>'
    message['To'] = ", ".join(emails)
    message['Subject'] = build_email_subject(notification)
    message['Message-ID'] = f"<notification-{notification.id or 'adhoc'}-{int(datetime.now().timestamp())}@{user.split('@')[-1]}>"
    message.set_content(notification.message)
    message.add_alternative(build_email_html(notification, item), subtype='html')

    await asyncio.to_thread(_send_smtp, message, user, password)
    logger.info(f"Notification e-mail sent to {message['To']}")
    return message['Message-ID']
