"""
Notification inbox - step outcomes waiting to be delivered to users.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from api.src.db.database import get_db
from api.src.models import NotificationResponse
from orchestrator.src.models.queries import mark_delivered_statement, undelivered_notifications_query

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notify", tags=["notifications"])

@router.get("", response_model=List[NotificationResponse])
async def list_undelivered(db: AsyncSession = Depends(get_db)):
    """Undelivered step notifications, oldest first."""
    result = await db.execute(undelivered_notifications_query())
    return result.scalars().all()

@router.patch("/{notification_id}")
async def mark_delivered(notification_id: int, db: AsyncSession = Depends(get_db)):
    result = await db.execute(mark_delivered_statement(notification_id))
    await db.commit()

    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Notification not found")

    logger.info(f"Notification {notification_id} marked as delivered")
    return {"id": notification_id, "delivered": True}
