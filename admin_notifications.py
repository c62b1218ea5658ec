# admin_notifications.py

import logging
from types import SimpleNamespace
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from models import Notification
from inventory_models import InventoryItem
from dependencies import get_db_session
from notification_manager import (
    get_notification_settings, check_expiring_stock, send_email_notification, EmailNotConfigured
)
from schemas import NotificationSettingsIn, EmailNotificationIn

router = APIRouter(tags=["notifications"])
logger = logging.getLogger(__name__)


def notification_to_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "severity": n.severity,
        "title": n.title,
        "message": n.message,
        "inventory_item_id": n.inventory_item_id,
        "item_name": n.inventory_item.name if n.inventory_item else None,
        "is_read": n.is_read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


def settings_to_dict(s) -> dict:
    return {
        "email_enabled": s.email_enabled,
        "email_addresses": s.email_addresses or [],
        "low_stock_alerts": s.low_stock_alerts,
        "expiry_alerts": s.expiry_alerts,
        "expiry_days_before": s.expiry_days_before,
    }


@router.get("/admin/notifications")
async def list_notifications(
    filter: str = Query("all"),
    session: AsyncSession = Depends(get_db_session)
):
    query = select(Notification).order_by(Notification.created_at.desc(), Notification.id.desc())
    if filter == "unread":
        query = query.where(Notification.is_read == False)
    elif filter == "low_stock":
        query = query.where(Notification.type.in_(["low_stock", "critical_stock"]))
    elif filter == "expiry":
        query = query.where(Notification.type == "expiry_alert")
    elif filter != "all":
        raise HTTPException(status_code=400, detail=f"Unknown filter: {filter}")

    notifications = (await session.execute(query)).scalars().all()
    everything = (await session.execute(select(Notification))).scalars().all()
    return {
        "notifications": [notification_to_dict(n) for n in notifications],
        "stats": {
            "total": len(everything),
            "unread": sum(1 for n in everything if not n.is_read),
            "critical": sum(1 for n in everything if n.severity == 'critical'),
            "warnings": sum(1 for n in everything if n.severity == 'warning'),
        },
    }


@router.post("/admin/notifications/{notification_id}/read")
async def mark_read(notification_id: int, session: AsyncSession = Depends(get_db_session)):
    notification = await session.get(Notification, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.is_read = True
    await session.commit()
    return notification_to_dict(notification)


@router.post("/admin/notifications/read-all")
async def mark_all_read(session: AsyncSession = Depends(get_db_session)):
    result = await session.execute(update(Notification).where(Notification.is_read == False).values(is_read=True))
    await session.commit()
    return {"status": "ok", "updated": result.rowcount}


@router.delete("/admin/notifications/{notification_id}")
async def delete_notification(notification_id: int, session: AsyncSession = Depends(get_db_session)):
    notification = await session.get(Notification, notification_id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    await session.delete(notification)
    await session.commit()
    return {"status": "ok"}


@router.get("/admin/notifications/settings")
async def get_settings(session: AsyncSession = Depends(get_db_session)):
    return settings_to_dict(await get_notification_settings(session))


@router.put("/admin/notifications/settings")
async def update_settings(data: NotificationSettingsIn, session: AsyncSession = Depends(get_db_session)):
    settings = await get_notification_settings(session)
    values = data.model_dump(exclude_unset=True)
    if "email_addresses" in values:
        values["email_addresses"] = [e.strip() for e in values["email_addresses"] or [] if e and e.strip()]
    for field, value in values.items():
        setattr(settings, field, value)
    await session.commit()
    logger.info("Notification settings updated")
    return settings_to_dict(settings)


@router.post("/admin/notifications/check-expiry")
async def run_expiry_check(session: AsyncSession = Depends(get_db_session)):
    created = await check_expiring_stock(session)
    return {"created": len(created), "notifications": [n.id for n in created]}


@router.post("/api/send-notification-email")
async def send_notification_email(data: EmailNotificationIn, session: AsyncSession = Depends(get_db_session)):
    """Sends an alert e-mail on demand, e.g. from the dashboard."""
    item = None
    if data.inventory_item_id:
        item = await session.get(InventoryItem, data.inventory_item_id)

    notification = SimpleNamespace(
        id=None, type=data.type, severity=data.severity,
        title=data.title, message=data.message, created_at=datetime.now(),
    )
    try:
        message_id = await send_email_notification(data.emails, notification, item)
    except EmailNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error sending notification e-mail: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to send email: {e}")
    return {"success": True, "message_id": message_id}
