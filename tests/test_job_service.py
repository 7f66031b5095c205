from datetime import date

import pytest

from careconnect.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from careconnect.core.identity import AdminActor, CaregiverActor, FamilyActor
from careconnect.models.audit import AuditLogModel, NotificationModel
from careconnect.models.job import ApplicationModel, JobPostModel
from careconnect.models.schemas import CreateJobPostRequest
from careconnect.models.state import BackgroundCheckStatus, JobPostStatus
from careconnect.services.application_service import ApplicationService
from careconnect.services.job_service import JobService

FAMILY = FamilyActor(id="FAM-1")


def job_request(**overrides):
    data = dict(
        elder_name="Grandpa Chen",
        date=date(2026, 11, 20),
        start_time="09:00",
        duration_hours=4,
        salary=100,
        location="Taipei Xinyi",
        skill_required=["medical_care", "mobility_assistance"],
    )
    data.update(overrides)
    return CreateJobPostRequest(**data)


@pytest.fixture
def jobs(db, make_family):
    make_family("FAM-1")
    make_family("FAM-2")
    return JobService(db)


@pytest.fixture
def applications(db):
    return ApplicationService(db)


def test_create_fans_out_to_eligible_caregivers_only(db, jobs, make_caregiver):
    make_caregiver("CARE-A", skills=["medical_care"])
    make_caregiver("CARE-B", skills=["companionship"])
    make_caregiver("CARE-C", skills=["mobility_assistance"], verified=False)
    make_caregiver("CARE-D", skills=["medical_care"], background=BackgroundCheckStatus.PENDING)

    job = jobs.create_job_post(FAMILY, job_request(skill_required=["medical_care", "medical_care", "mobility_assistance"]))

    assert job.status == JobPostStatus.ACTIVE
    assert job.skill_required == ["medical_care", "mobility_assistance"]
    recipients = [n.recipient_id for n in db.query(NotificationModel).filter(NotificationModel.type == "NEW_JOB_POST")]
    assert recipients == ["CARE-A"]
    assert db.query(AuditLogModel).filter(AuditLogModel.target_id == job.id).count() == 1


def test_create_rules(jobs):
    with pytest.raises(ForbiddenError):
        jobs.create_job_post(CaregiverActor(id="CARE-1"), job_request())
    with pytest.raises(ValidationError) as excinfo:
        jobs.create_job_post(FAMILY, job_request(skill_required=[]))
    assert excinfo.value.field == "skill_required"
    with pytest.raises(ValidationError):
        jobs.create_job_post(FAMILY, job_request(duration_hours=30))
    with pytest.raises(ValidationError):
        jobs.create_job_post(FAMILY, job_request(salary=-5))
    with pytest.raises(ValidationError):
        jobs.create_job_post(FAMILY, job_request(start_time="9am"))


def test_matching_scenario(jobs, make_caregiver):
    make_caregiver("CARE-A", skills=["medical_care"])
    make_caregiver("CARE-B", skills=["medical_care", "mobility_assistance", "companionship"])
    make_caregiver("CARE-X", skills=["companionship"])
    job = jobs.create_job_post(FAMILY, job_request())

    matches = jobs.get_matching_caregivers(FAMILY, job.id)

    assert [(m.caregiver_id, m.match_score) for m in matches] == [("CARE-B", 100), ("CARE-A", 50)]


def test_matching_is_owner_only(jobs):
    job = jobs.create_job_post(FAMILY, job_request())
    with pytest.raises(ForbiddenError):
        jobs.get_matching_caregivers(FamilyActor(id="FAM-2"), job.id)


def test_apply_appends_once_and_notifies_family(db, jobs, applications, make_caregiver):
    make_caregiver("CARE-1")
    job = jobs.create_job_post(FAMILY, job_request())
    caregiver = CaregiverActor(id="CARE-1")

    updated = applications.apply(caregiver, job.id)
    assert [a.caregiver_id for a in updated.applications] == ["CARE-1"]
    assert db.query(JobPostModel).filter(JobPostModel.id == job.id).one().version == 2
    assert db.query(NotificationModel).filter(
        NotificationModel.type == "JOB_APPLICATION", NotificationModel.recipient_id == "FAM-1"
    ).count() == 1

    with pytest.raises(ConflictError):
        applications.apply(caregiver, job.id)
    assert db.query(ApplicationModel).filter(ApplicationModel.job_post_id == job.id).count() == 1


def test_unverified_caregiver_cannot_apply(db, jobs, applications, make_caregiver):
    make_caregiver("CARE-U", verified=False)
    job = jobs.create_job_post(FAMILY, job_request())

    with pytest.raises(ForbiddenError):
        applications.apply(CaregiverActor(id="CARE-U"), job.id)
    assert db.query(ApplicationModel).count() == 0


def test_apply_requires_active_existing_job(jobs, applications, make_caregiver):
    make_caregiver("CARE-1")
    job = jobs.create_job_post(FAMILY, job_request())
    jobs.update_job_status(FAMILY, job.id, "EXPIRE")

    with pytest.raises(ConflictError):
        applications.apply(CaregiverActor(id="CARE-1"), job.id)
    with pytest.raises(NotFoundError):
        applications.apply(CaregiverActor(id="CARE-1"), "JOB-404")
    with pytest.raises(ForbiddenError):
        applications.apply(FAMILY, job.id)


def test_concurrent_application_write_loses_on_version(db, jobs, applications, make_caregiver):
    make_caregiver("CARE-1")
    job = jobs.create_job_post(FAMILY, job_request())
    row = db.query(JobPostModel).filter(JobPostModel.id == job.id).one()
    assert row.version == 1
    # 另一個寫入先遞增了版本號；session 中的物件仍是 version 1
    db.query(JobPostModel).filter(JobPostModel.id == job.id).update({"version": 2}, synchronize_session=False)

    with pytest.raises(ConflictError):
        applications.apply(CaregiverActor(id="CARE-1"), job.id)
    assert db.query(ApplicationModel).count() == 0


def test_status_update_has_no_transition_rules(db, jobs):
    job = jobs.create_job_post(FAMILY, job_request())
    assert jobs.update_job_status(FAMILY, job.id, "EXPIRE").status == JobPostStatus.EXPIRE
    assert jobs.update_job_status(FAMILY, job.id, "ACTIVE").status == JobPostStatus.ACTIVE
    with pytest.raises(ValidationError):
        jobs.update_job_status(FAMILY, job.id, "DONE")
    with pytest.raises(ForbiddenError):
        jobs.update_job_status(FamilyActor(id="FAM-2"), job.id, "EXPIRE")
    assert db.query(AuditLogModel).filter(
        AuditLogModel.action == "Updated job post status to EXPIRE"
    ).count() == 1


def test_delete_removes_applications(db, jobs, applications, make_caregiver):
    make_caregiver("CARE-1")
    job = jobs.create_job_post(FAMILY, job_request())
    applications.apply(CaregiverActor(id="CARE-1"), job.id)

    jobs.delete_job_post(FAMILY, job.id)

    assert db.query(JobPostModel).count() == 0
    assert db.query(ApplicationModel).count() == 0
    with pytest.raises(NotFoundError):
        jobs.get_job_post(FAMILY, job.id)


def test_available_jobs_filter_skills_status_and_applied(jobs, applications, make_caregiver):
    make_caregiver("CARE-1", skills=["medical_care"])
    caregiver = CaregiverActor(id="CARE-1")
    matching = jobs.create_job_post(FAMILY, job_request())
    applied = jobs.create_job_post(FAMILY, job_request(elder_name="Applied"))
    expired = jobs.create_job_post(FAMILY, job_request(elder_name="Expired"))
    jobs.create_job_post(FAMILY, job_request(elder_name="Other", skill_required=["companionship"]))
    jobs.update_job_status(FAMILY, expired.id, "EXPIRE")
    applications.apply(caregiver, applied.id)

    available = jobs.list_available_jobs(caregiver)
    assert [job.id for job in available.items] == [matching.id]

    history = applications.list_application_history(caregiver)
    assert [job.id for job in history.items] == [applied.id]


def test_list_views(jobs):
    jobs.create_job_post(FAMILY, job_request())
    jobs.create_job_post(FamilyActor(id="FAM-2"), job_request(location="Kaohsiung", skill_required=["companionship"]))
    admin = AdminActor(id="ADM-1")

    assert jobs.list_family_job_posts(FAMILY).total == 1
    assert jobs.list_job_posts(admin).total == 2
    assert jobs.list_job_posts(admin, location="kaohsiung").total == 1
    assert jobs.list_job_posts(admin, skill="medical_care").total == 1
    assert jobs.list_job_posts(admin, date_from=date(2026, 12, 1)).total == 0
    with pytest.raises(ForbiddenError):
        jobs.list_job_posts(FAMILY)
