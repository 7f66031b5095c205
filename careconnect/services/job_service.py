"""
職缺管理服務
"""
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session

from careconnect.core.errors import ForbiddenError, NotFoundError, ValidationError
from careconnect.core.identity import Actor, AdminActor, CaregiverActor, FamilyActor
from careconnect.core.ids import new_id
from careconnect.core.logger import setup_logger
from careconnect.core.pagination import paginate, paginate_list
from careconnect.core.time_utils import is_valid_hhmm
from careconnect.models.job import ApplicationModel, JobPostModel
from careconnect.models.schemas import Application, CaregiverMatch, CreateJobPostRequest, JobPost, Page
from careconnect.models.state import BackgroundCheckStatus, JobPostStatus, RecipientKind, VerifiedStatus
from careconnect.models.user import CaregiverModel
from careconnect.services.audit_service import AuditService
from careconnect.services.booking_service import MAX_DURATION_HOURS, MIN_DURATION_HOURS, normalize_skills
from careconnect.services.matching_service import rank_candidates, skills_overlap
from careconnect.services.notification_service import NotificationService, NotificationType
from careconnect.services.status_machine import parse_job_post_status

# 設置 logger
logger = setup_logger(__name__)


def job_post_to_schema(job_post: JobPostModel) -> JobPost:
    """轉換為 Pydantic 模型（含應徵紀錄）"""
    return JobPost(
        id=job_post.id,
        family_id=job_post.family_id,
        elder_name=job_post.elder_name,
        date=job_post.date,
        start_time=job_post.start_time,
        duration_hours=job_post.duration_hours,
        salary=job_post.salary,
        location=job_post.location,
        status=job_post.status,
        skill_required=list(job_post.skill_required or []),
        applications=[
            Application(
                id=app.id,
                job_post_id=app.job_post_id,
                caregiver_id=app.caregiver_id,
                applied_at=app.applied_at,
            )
            for app in job_post.applications
        ],
        created_at=job_post.created_at,
    )


def _page_of(rows, total: int, total_pages: int, page: int) -> Page[JobPost]:
    return Page[JobPost](
        items=[job_post_to_schema(row) for row in rows],
        total=total,
        total_pages=total_pages,
        current_page=page,
    )


class JobService:
    """職缺管理服務"""

    def __init__(
        self,
        db: Session,
        audit_service: Optional[AuditService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        初始化職缺服務

        參數:
            db: 資料庫會話
            audit_service: 稽核服務（可選）
            notification_service: 通知服務（可選）
        """
        self.db = db
        self.audit_service = audit_service or AuditService(db)
        self.notification_service = notification_service or NotificationService(db)

    def _get_job_post_model(self, job_post_id: str) -> JobPostModel:
        job_post = self.db.query(JobPostModel).filter(JobPostModel.id == job_post_id).first()
        if not job_post:
            raise NotFoundError("Job post not found")
        return job_post

    def _get_owned_job_post(self, actor: Actor, job_post_id: str) -> JobPostModel:
        """取得呼叫者（家屬）自己的職缺"""
        if not isinstance(actor, FamilyActor):
            raise ForbiddenError("Only family can manage job posts")
        job_post = self._get_job_post_model(job_post_id)
        if job_post.family_id != actor.id:
            raise ForbiddenError("You do not own this job post")
        return job_post

    def _eligible_caregivers(self) -> List[CaregiverModel]:
        """已驗證且背景調查完成的照護員（依建立順序）"""
        return self.db.query(CaregiverModel).filter(
            CaregiverModel.verified_status == VerifiedStatus.VERIFIED,
            CaregiverModel.background_check_status == BackgroundCheckStatus.COMPLETED,
        ).order_by(CaregiverModel.created_at, CaregiverModel.id).all()

    @staticmethod
    def _validate_create(request: CreateJobPostRequest) -> List[str]:
        if not request.elder_name or not request.elder_name.strip():
            raise ValidationError("Elder name is required", field="elder_name")
        if not request.location or not request.location.strip():
            raise ValidationError("Location is required", field="location")
        if not is_valid_hhmm(request.start_time):
            raise ValidationError("Valid startTime HH:MM required", field="start_time")
        if not MIN_DURATION_HOURS <= request.duration_hours <= MAX_DURATION_HOURS:
            raise ValidationError("Duration must be between 0.5 and 24 hours", field="duration_hours")
        if request.salary < 0:
            raise ValidationError("Salary must be positive", field="salary")
        skills = normalize_skills(request.skill_required)
        if not skills:
            raise ValidationError("At least one required skill is needed", field="skill_required")
        return skills

    def create_job_post(self, actor: Actor, request: CreateJobPostRequest) -> JobPost:
        """
        家屬建立職缺

        建立後通知所有技能有交集、已驗證且背景調查完成的照護員。

        參數:
            actor: 呼叫者（必須是家屬）
            request: 建立職缺請求

        返回:
            JobPost: 建立的職缺
        """
        if not isinstance(actor, FamilyActor):
            raise ForbiddenError("Only family can create job posts")
        skills = self._validate_create(request)

        try:
            job_post = JobPostModel(
                id=new_id("JOB"),
                family_id=actor.id,
                elder_name=request.elder_name.strip(),
                date=request.date,
                start_time=request.start_time,
                duration_hours=request.duration_hours,
                salary=request.salary,
                location=request.location.strip(),
                status=JobPostStatus.ACTIVE,
                skill_required=skills,
                version=1,
            )
            self.db.add(job_post)
            self.db.commit()
            self.db.refresh(job_post)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"家屬 {actor.id} 建立職缺 {job_post.id}")
        self.audit_service.record(actor.id, actor.table, "Created job post", "JobPost", job_post.id)

        notified = 0
        for caregiver in self._eligible_caregivers():
            if not skills_overlap(caregiver.skills or [], skills):
                continue
            if self.notification_service.send(
                recipient_id=caregiver.id,
                recipient_kind=RecipientKind.CAREGIVER,
                notification_type=NotificationType.NEW_JOB_POST,
                message=f"New job matching your skills: care for {job_post.elder_name} on {job_post.date.isoformat()}",
                job_post_id=job_post.id,
            ):
                notified += 1
        logger.info(f"職缺 {job_post.id} 已通知 {notified} 位照護員")

        return job_post_to_schema(job_post)

    def get_job_post(self, actor: Actor, job_post_id: str) -> JobPost:
        """取得職缺（照護員與管理員可看任何職缺，家屬只能看自己的）"""
        job_post = self.db.query(JobPostModel).filter(JobPostModel.id == job_post_id).first()
        if not job_post or (isinstance(actor, FamilyActor) and job_post.family_id != actor.id):
            raise NotFoundError("Job post not found or access denied")
        return job_post_to_schema(job_post)

    def list_job_posts(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        location: Optional[str] = None,
        skill: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Page[JobPost]:
        """管理員取得所有職缺（可依狀態、地點、技能、日期篩選）"""
        if not isinstance(actor, AdminActor):
            raise ForbiddenError("Only admin can list all job posts")

        query = self.db.query(JobPostModel)
        if status:
            query = query.filter(JobPostModel.status == parse_job_post_status(status))
        if location:
            query = query.filter(JobPostModel.location.ilike(f"%{location}%"))
        if date_from:
            query = query.filter(JobPostModel.date >= date_from)
        if date_to:
            query = query.filter(JobPostModel.date <= date_to)
        query = query.order_by(JobPostModel.created_at.desc())

        if skill:
            rows = [row for row in query.all() if skill in (row.skill_required or [])]
            rows, total, total_pages = paginate_list(rows, page, limit)
        else:
            rows, total, total_pages = paginate(query, page, limit)
        return _page_of(rows, total, total_pages, page)

    def list_family_job_posts(
        self, actor: Actor, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> Page[JobPost]:
        """家屬取得自己的職缺"""
        if not isinstance(actor, FamilyActor):
            raise ForbiddenError("Only family can list their job posts")
        query = self.db.query(JobPostModel).filter(JobPostModel.family_id == actor.id)
        if status:
            query = query.filter(JobPostModel.status == parse_job_post_status(status))
        rows, total, total_pages = paginate(query.order_by(JobPostModel.created_at.desc()), page, limit)
        return _page_of(rows, total, total_pages, page)

    def list_available_jobs(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        location: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Page[JobPost]:
        """
        照護員可應徵的職缺

        條件：狀態 ACTIVE、需要的技能與照護員技能有交集、尚未應徵過。
        """
        if not isinstance(actor, CaregiverActor):
            raise ForbiddenError("Only caregivers can browse available jobs")
        caregiver = self.db.query(CaregiverModel).filter(CaregiverModel.id == actor.id).first()
        if not caregiver:
            raise NotFoundError("Caregiver not found")

        applied = self.db.query(ApplicationModel.job_post_id).filter(
            ApplicationModel.caregiver_id == actor.id
        )
        query = self.db.query(JobPostModel).filter(
            JobPostModel.status == JobPostStatus.ACTIVE,
            ~JobPostModel.id.in_(applied),
        )
        if location:
            query = query.filter(JobPostModel.location.ilike(f"%{location}%"))
        if date_from:
            query = query.filter(JobPostModel.date >= date_from)
        if date_to:
            query = query.filter(JobPostModel.date <= date_to)

        caregiver_skills = caregiver.skills or []
        rows = [
            row for row in query.order_by(JobPostModel.created_at.desc()).all()
            if skills_overlap(caregiver_skills, row.skill_required or [])
        ]
        rows, total, total_pages = paginate_list(rows, page, limit)
        return _page_of(rows, total, total_pages, page)

    def update_job_status(self, actor: Actor, job_post_id: str, status: str) -> JobPost:
        """更新職缺狀態（ACTIVE / EXPIRE，沒有轉換限制）"""
        new_status = parse_job_post_status(status)
        job_post = self._get_owned_job_post(actor, job_post_id)

        try:
            job_post.status = new_status
            self.db.commit()
            self.db.refresh(job_post)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"職缺 {job_post.id} 狀態更新為 {new_status.value}")
        self.audit_service.record(
            actor.id, actor.table, f"Updated job post status to {new_status.value}", "JobPost", job_post.id
        )
        return job_post_to_schema(job_post)

    def delete_job_post(self, actor: Actor, job_post_id: str) -> None:
        """刪除職缺（連同應徵紀錄）"""
        job_post = self._get_owned_job_post(actor, job_post_id)
        try:
            self.db.delete(job_post)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"職缺 {job_post_id} 已刪除")
        self.audit_service.record(actor.id, actor.table, "Deleted job post", "JobPost", job_post_id)

    def get_matching_caregivers(self, actor: Actor, job_post_id: str) -> List[CaregiverMatch]:
        """
        取得職缺的推薦照護員（分數由高到低前 5 名）

        返回:
            list: CaregiverMatch 列表
        """
        job_post = self._get_owned_job_post(actor, job_post_id)
        skill_required = job_post.skill_required or []

        candidates = [
            (caregiver, caregiver.skills or [])
            for caregiver in self._eligible_caregivers()
            if skills_overlap(caregiver.skills or [], skill_required)
        ]
        return [
            CaregiverMatch(
                caregiver_id=caregiver.id,
                name=caregiver.name,
                email=caregiver.email,
                phone=caregiver.phone,
                skills=list(caregiver.skills or []),
                match_score=score,
            )
            for caregiver, score in rank_candidates(candidates, skill_required)
        ]
