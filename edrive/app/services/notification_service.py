"""
Notification Service.

Handles creation and state management of notifications, and the
dispatcher that emits them after ride state changes.
"""

import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from datetime import datetime
from typing import Optional, Dict, Any, Iterable, List

from edrive.app.models.notification import Notification, NotificationType
from edrive.app.models.user import User
from edrive.app.models.enums import UserRole
from edrive.app.services.event_broker import event_broker, notifications_topic, Subscription

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        user_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.SYSTEM,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Create a single notification."""
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            metadata_payload=metadata
        )
        db.add(notif)
        await db.flush()  # Caller commits
        return notif

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        """Newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read == False)  # noqa: E712
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)

        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def broadcast(
        db: AsyncSession,
        title: str,
        message: str,
        role: Optional[UserRole] = None,
        type: NotificationType = NotificationType.SYSTEM
    ) -> int:
        """Broadcast notification to all active users or filtered by role."""
        query = select(User.id).where(User.is_active == True)  # noqa: E712
        if role:
            query = query.where(User.role == role)

        result = await db.execute(query)
        user_ids = result.scalars().all()

        notifications = [
            Notification(
                user_id=uid,
                title=title,
                message=message,
                type=type
            )
            for uid in user_ids
        ]

        if notifications:
            db.add_all(notifications)

        return len(notifications)

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a notification as read. Only the recipient can do this."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=datetime.utcnow()
        ).execution_options(synchronize_session=False)
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> int:
        """Mark all notifications for user as read."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).values(
            is_read=True,
            read_at=datetime.utcnow()
        ).execution_options(synchronize_session=False)
        result = await db.execute(stmt)
        return result.rowcount


class NotificationDispatcher:
    """
    Fire-and-forget notifications for ride events.

    Called only after the triggering state change has been committed. The
    writes go through a separate session on the caller's engine, so a
    failure here is logged and swallowed without touching the caller's
    loaded objects: the ride transition already happened and must not be
    reported to the caller as failed.
    """

    async def notify(
        self,
        db: AsyncSession,
        user_ids: Iterable[int],
        title: str,
        message: str,
        type: NotificationType = NotificationType.RIDE_REQUEST,
        metadata: Optional[Dict[str, Any]] = None
    ) -> int:
        """Write one notification per recipient and push it. Returns how many were written."""
        recipients = [uid for uid in dict.fromkeys(user_ids) if uid is not None]
        if not recipients:
            return 0

        async with AsyncSession(bind=db.bind, expire_on_commit=False) as session:
            try:
                created = []
                for user_id in recipients:
                    created.append(await NotificationService.create_notification(
                        session, user_id, title, message, type=type, metadata=metadata
                    ))
                await session.commit()
            except Exception:
                logger.exception("Failed to write notification '%s' for users %s", title, recipients)
                await session.rollback()
                return 0

        for notif in created:
            event_broker.publish(
                notifications_topic(notif.user_id),
                "notification.created",
                {
                    "id": notif.id,
                    "type": notif.type.value,
                    "title": notif.title,
                    "message": notif.message,
                    "metadata": notif.metadata_payload,
                }
            )
        return len(created)

    async def new_offer(self, db: AsyncSession, passenger_id: int, request_id: str, driver_name: str, fare) -> int:
        return await self.notify(
            db, [passenger_id],
            "New Bid Received!",
            f"{driver_name} offered Rs {fare} for your trip.",
            metadata={"request_id": request_id}
        )

    async def offer_accepted(self, db: AsyncSession, driver_id: int, request_id: str, fare) -> int:
        return await self.notify(
            db, [driver_id],
            "Offer Accepted!",
            f"The passenger accepted your offer of Rs {fare}. Head to the pickup point.",
            metadata={"request_id": request_id}
        )

    async def ride_taken(self, db: AsyncSession, driver_ids: Iterable[int], request_id: str) -> int:
        return await self.notify(
            db, driver_ids,
            "Ride Taken",
            "The passenger chose another captain for this ride.",
            type=NotificationType.ALERT,
            metadata={"request_id": request_id}
        )

    async def trip_started(self, db: AsyncSession, passenger_id: int, request_id: str) -> int:
        return await self.notify(
            db, [passenger_id],
            "Trip Started",
            "Your captain has started the trip.",
            metadata={"request_id": request_id}
        )

    async def trip_completed(self, db: AsyncSession, passenger_id: int, request_id: str, fare) -> int:
        return await self.notify(
            db, [passenger_id],
            "Trip Completed",
            f"You have arrived. Fare: Rs {fare}. Please rate your captain.",
            metadata={"request_id": request_id}
        )

    async def ride_cancelled(self, db: AsyncSession, user_id: int, request_id: str, reason: str) -> int:
        return await self.notify(
            db, [user_id],
            "Ride Cancelled",
            f"The ride was cancelled: {reason}",
            type=NotificationType.ALERT,
            metadata={"request_id": request_id, "reason": reason}
        )

    async def chat_message(self, db: AsyncSession, user_id: int, request_id: str, sender_name: str, text: str) -> int:
        preview = text if len(text) <= 80 else text[:77] + "..."
        return await self.notify(
            db, [user_id],
            f"New message from {sender_name}",
            preview,
            type=NotificationType.CHAT,
            metadata={"request_id": request_id}
        )

    async def rating_received(self, db: AsyncSession, user_id: int, request_id: str, rating: int, from_driver: bool) -> int:
        source = "your Captain" if from_driver else "your Passenger"
        return await self.notify(
            db, [user_id],
            "New Rating Received!",
            f"You received a {rating}-star rating from {source}.",
            type=NotificationType.SYSTEM,
            metadata={"request_id": request_id, "rating": rating}
        )

    async def driver_decision(self, db: AsyncSession, user_id: int, approved: bool, note: Optional[str] = None) -> int:
        if approved:
            title, message = "Account Approved", "Your driver account is approved. You can now receive ride requests."
        else:
            title = "Account Not Approved"
            message = note or "Your driver documents were not approved. Please resubmit."
        return await self.notify(db, [user_id], title, message, type=NotificationType.SYSTEM)


# Global instance
notification_dispatcher = NotificationDispatcher()


def subscribe_notifications(user_id: int) -> Subscription:
    """Live feed of notifications addressed to one user (the bell)."""
    return event_broker.subscribe(notifications_topic(user_id))
