"""
Complaints to HQ.

Unlike incident reports these are not filed from inside a trip: any signed-in
passenger or driver can describe a problem with anyone, registered or not.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import ResourceNotFoundError, ValidationError
from edrive.app.models.complaint import Complaint
from edrive.app.models.ride_enums import ComplaintStatus
from edrive.app.schemas.complaint import ComplaintCreate
from edrive.app.services.audit import log_event, AuditAction

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("subject", "message", "target_name")


async def submit_complaint(
    db: AsyncSession,
    reporter_id: int,
    data: ComplaintCreate,
    actor_email: Optional[str] = None
) -> Complaint:
    """
    File a complaint; it starts OPEN.

    Raises:
        ValidationError: subject, message or target name is blank
    """
    blank = [name for name in REQUIRED_FIELDS if not getattr(data, name).strip()]
    if blank:
        raise ValidationError("Please fill subject, target name and message", details={"fields": blank})

    complaint = Complaint(
        reporter_id=reporter_id,
        subject=data.subject.strip(),
        message=data.message.strip(),
        target_name=data.target_name.strip(),
        target_phone=(data.target_phone or "").strip() or None,
        target_email=data.target_email,
        proof_image_url=data.proof_image_url
    )
    db.add(complaint)
    await db.commit()
    await db.refresh(complaint)

    logger.info("Complaint %s filed by user %s: %s", complaint.id, reporter_id, complaint.subject)
    await log_event(
        db=db,
        action=AuditAction.COMPLAINT_FILED,
        actor_id=reporter_id,
        actor_email=actor_email,
        metadata={"complaint_id": complaint.id, "subject": complaint.subject}
    )
    return complaint


async def list_user_complaints(db: AsyncSession, reporter_id: int, limit: int = 50) -> List[Complaint]:
    result = await db.execute(
        select(Complaint)
        .where(Complaint.reporter_id == reporter_id)
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def list_complaints(
    db: AsyncSession,
    status: Optional[ComplaintStatus] = None,
    limit: int = 100
) -> List[Complaint]:
    """Most recent first (admin complaints tab)."""
    query = select(Complaint)
    if status is not None:
        query = query.where(Complaint.status == status)
    result = await db.execute(query.order_by(Complaint.created_at.desc(), Complaint.id.desc()).limit(limit))
    return result.scalars().all()


async def update_complaint_status(
    db: AsyncSession,
    complaint_id: int,
    status: ComplaintStatus,
    admin: dict,
    note: Optional[str] = None
) -> Complaint:
    """
    Move a complaint to `status`, optionally with a resolution note.

    Raises:
        ResourceNotFoundError: unknown complaint
    """
    result = await db.execute(select(Complaint).where(Complaint.id == complaint_id))
    complaint = result.scalar_one_or_none()
    if not complaint:
        raise ResourceNotFoundError("Complaint", complaint_id)

    previous = complaint.status
    complaint.status = ComplaintStatus(status)
    if note is not None and note.strip():
        complaint.resolution_note = note.strip()
    await db.commit()
    await db.refresh(complaint)

    await log_event(
        db=db,
        action=AuditAction.COMPLAINT_UPDATED,
        actor_id=admin.get("user_id"),
        actor_email=admin.get("sub"),
        target_user_id=complaint.reporter_id,
        metadata={"complaint_id": complaint.id, "from": previous.value, "to": complaint.status.value}
    )
    return complaint
