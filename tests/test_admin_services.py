import pytest

from careconnect.core.errors import ForbiddenError, NotFoundError, ValidationError
from careconnect.core.identity import AdminActor, FamilyActor
from careconnect.models.schemas import UpdateVerificationRequest
from careconnect.models.state import BackgroundCheckStatus, VerifiedStatus
from careconnect.services.audit_service import AuditService
from careconnect.services.caregiver_service import CaregiverService

ADMIN = AdminActor(id="ADM-1")


def test_update_verification_records_audit(db, make_caregiver):
    make_caregiver("CARE-1", verified=False, background=BackgroundCheckStatus.PENDING)
    service = CaregiverService(db)

    caregiver = service.update_verification(ADMIN, "CARE-1", UpdateVerificationRequest(
        verified_status=VerifiedStatus.VERIFIED,
        background_check_status=BackgroundCheckStatus.COMPLETED,
    ))

    assert caregiver.verified_status == VerifiedStatus.VERIFIED
    assert caregiver.background_check_status == BackgroundCheckStatus.COMPLETED
    [log] = AuditService(db).list_audit_logs(target_id="CARE-1").items
    assert log.action == "Updated caregiver verified status to VERIFIED and background check to COMPLETED"
    assert log.actor_table == "Admin"


def test_update_verification_rules(db, make_caregiver):
    make_caregiver("CARE-1")
    service = CaregiverService(db)
    with pytest.raises(ForbiddenError):
        service.update_verification(FamilyActor(id="FAM-1"), "CARE-1", UpdateVerificationRequest(
            verified_status=VerifiedStatus.UNVERIFIED
        ))
    with pytest.raises(ValidationError):
        service.update_verification(ADMIN, "CARE-1", UpdateVerificationRequest())
    with pytest.raises(NotFoundError):
        service.update_verification(ADMIN, "CARE-404", UpdateVerificationRequest(
            verified_status=VerifiedStatus.VERIFIED
        ))


def test_pending_caregivers(db, make_caregiver):
    make_caregiver("CARE-1")
    make_caregiver("CARE-2", verified=False)
    make_caregiver("CARE-3", background=BackgroundCheckStatus.PENDING)

    page = CaregiverService(db).list_pending_caregivers(ADMIN)
    assert sorted(c.id for c in page.items) == ["CARE-2", "CARE-3"]


def test_audit_log_filters(db):
    audits = AuditService(db)
    assert audits.record("FAM-1", "Family", "Created booking", "Booking", "BKG-1")
    assert audits.record("CARE-1", "Care", "Accepted booking", "Booking", "BKG-1")
    assert audits.record("ADM-1", "Admin", "Approved connect account", "Care", "CARE-1")

    assert audits.list_audit_logs().total == 3
    assert audits.list_audit_logs(target_table="Booking").total == 2
    assert [log.action for log in audits.list_audit_logs(actor_table="Care").items] == ["Accepted booking"]
    with pytest.raises(ValidationError):
        audits.list_audit_logs(page=0)
