"""
Driver onboarding and approval.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edrive.app.core.exceptions import InsufficientPermissionsError, ResourceNotFoundError, ValidationError
from edrive.app.models.driver_profile import DriverProfile
from edrive.app.models.ride_enums import DriverStatus, DocumentType
from edrive.app.schemas.driver import DriverOnboarding
from edrive.app.services.audit import log_event, AuditAction
from edrive.app.services.document_verification import DocumentVerifier
from edrive.app.services.notification_service import notification_dispatcher

logger = logging.getLogger(__name__)


async def get_profile(db: AsyncSession, user_id: int) -> Optional[DriverProfile]:
    result = await db.execute(select(DriverProfile).where(DriverProfile.user_id == user_id))
    return result.scalar_one_or_none()


async def require_profile(db: AsyncSession, user_id: int) -> DriverProfile:
    profile = await get_profile(db, user_id)
    if not profile:
        raise ResourceNotFoundError("Driver profile", user_id)
    return profile


async def require_approved_driver(db: AsyncSession, user_id: int) -> DriverProfile:
    """
    Raises:
        InsufficientPermissionsError: no profile, or not approved yet
    """
    profile = await get_profile(db, user_id)
    if not profile or profile.status != DriverStatus.APPROVED:
        raise InsufficientPermissionsError("Your driver account is not approved yet")
    return profile


async def submit_onboarding(
    db: AsyncSession,
    user_id: int,
    data: DriverOnboarding,
    verifier: DocumentVerifier,
    actor_email: Optional[str] = None
) -> DriverProfile:
    """
    Create or resubmit a driver profile.

    All three documents are verified before anything is written. A document
    the verifier rejects fails the whole submission; a document the verifier
    could not judge passes but flags the profile for manual review.
    Resubmission puts an approved or rejected driver back to PENDING.

    Raises:
        ValidationError: a document was rejected (details carry the reasons)
    """
    documents = {
        DocumentType.DRIVING_LICENSE: data.license_image_url,
        DocumentType.VEHICLE_REGISTRATION: data.registration_image_url,
        DocumentType.VEHICLE_PHOTO: data.vehicle_image_url,
    }

    results = {}
    for doc_type, image_ref in documents.items():
        verdict = await verifier.verify_document(image_ref, doc_type)
        results[doc_type.value] = verdict.model_dump()

    rejected = {name: result["reason"] for name, result in results.items() if not result["valid"]}
    if rejected:
        raise ValidationError("One or more documents were rejected", details={"documents": rejected})

    manual_review = any(result["manual_review"] for result in results.values())

    profile = await get_profile(db, user_id)
    if profile is None:
        profile = DriverProfile(user_id=user_id)
        db.add(profile)

    profile.vehicle_category = data.vehicle_category
    profile.vehicle_model = data.vehicle_model.strip()
    profile.vehicle_number = data.vehicle_number.strip().upper()
    profile.vehicle_color = data.vehicle_color
    profile.license_image_url = data.license_image_url
    profile.registration_image_url = data.registration_image_url
    profile.vehicle_image_url = data.vehicle_image_url
    profile.verification_results = results
    profile.manual_review_required = manual_review
    profile.status = DriverStatus.PENDING

    await db.commit()
    await db.refresh(profile)

    if manual_review:
        logger.warning("Driver %s onboarded without automatic verification, manual review required", user_id)
    await log_event(
        db=db,
        action=AuditAction.DRIVER_ONBOARDED,
        actor_id=user_id,
        actor_email=actor_email,
        metadata={"vehicle_category": profile.vehicle_category.value, "manual_review": manual_review}
    )
    return profile


async def list_profiles(db: AsyncSession, status: Optional[DriverStatus] = None, limit: int = 100) -> List[DriverProfile]:
    """Oldest submissions first (review queue order)."""
    query = select(DriverProfile)
    if status is not None:
        query = query.where(DriverProfile.status == status)
    query = query.order_by(DriverProfile.created_at, DriverProfile.id).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def set_driver_status(
    db: AsyncSession,
    user_id: int,
    status: DriverStatus,
    admin: dict,
    note: Optional[str] = None
) -> DriverProfile:
    """Admin decision on a driver profile; the driver is notified."""
    profile = await require_profile(db, user_id)

    profile.status = status
    if status == DriverStatus.APPROVED:
        profile.manual_review_required = False
    await db.commit()
    await db.refresh(profile)

    approved = status == DriverStatus.APPROVED
    logger.info("Driver %s set to %s by admin %s", user_id, status.value, admin.get("user_id"))
    await log_event(
        db=db,
        action=AuditAction.DRIVER_APPROVED if approved else AuditAction.DRIVER_REJECTED,
        actor_id=admin.get("user_id"),
        actor_email=admin.get("sub"),
        target_user_id=user_id,
        metadata={"note": note} if note else None
    )
    await notification_dispatcher.driver_decision(db, user_id, approved, note)
    return profile
