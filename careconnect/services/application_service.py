"""
職缺應徵服務
"""
from typing import Optional
from sqlalchemy.orm import Session

from careconnect.core.errors import ConflictError, ForbiddenError, NotFoundError
from careconnect.core.identity import Actor, CaregiverActor
from careconnect.core.ids import new_id
from careconnect.core.logger import setup_logger
from careconnect.core.pagination import paginate
from careconnect.core.time_utils import utc_now
from careconnect.models.job import ApplicationModel, JobPostModel
from careconnect.models.schemas import JobPost, Page
from careconnect.models.state import JobPostStatus, RecipientKind, VerifiedStatus
from careconnect.models.user import CaregiverModel
from careconnect.services.audit_service import AuditService
from careconnect.services.job_service import job_post_to_schema
from careconnect.services.notification_service import NotificationService, NotificationType

# 設置 logger
logger = setup_logger(__name__)


class ApplicationService:
    """職缺應徵服務（應徵紀錄隸屬於職缺，只透過職缺寫入）"""

    def __init__(
        self,
        db: Session,
        audit_service: Optional[AuditService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        初始化應徵服務

        參數:
            db: 資料庫會話
            audit_service: 稽核服務（可選）
            notification_service: 通知服務（可選）
        """
        self.db = db
        self.audit_service = audit_service or AuditService(db)
        self.notification_service = notification_service or NotificationService(db)

    def get_caregiver_application(self, caregiver_id: str, job_post_id: str) -> Optional[ApplicationModel]:
        """取得照護員對特定職缺的應徵紀錄"""
        return self.db.query(ApplicationModel).filter(
            ApplicationModel.caregiver_id == caregiver_id,
            ApplicationModel.job_post_id == job_post_id,
        ).first()

    def apply(self, actor: Actor, job_post_id: str) -> JobPost:
        """
        照護員應徵職缺

        同一位照護員對同一職缺最多一筆應徵紀錄；寫入時以職缺 version
        為條件遞增，同一職缺的並行寫入只會有一個成功。

        參數:
            actor: 呼叫者（必須是已驗證的照護員）
            job_post_id: 職缺 ID

        返回:
            JobPost: 更新後的職缺
        """
        if not isinstance(actor, CaregiverActor):
            raise ForbiddenError("Only caregivers can apply for jobs")

        caregiver = self.db.query(CaregiverModel).filter(CaregiverModel.id == actor.id).first()
        if not caregiver:
            raise NotFoundError("Caregiver not found")
        if caregiver.verified_status != VerifiedStatus.VERIFIED:
            raise ForbiddenError("Only verified caregivers can apply for jobs")

        job_post = self.db.query(JobPostModel).filter(JobPostModel.id == job_post_id).first()
        if not job_post:
            raise NotFoundError("Job post not found")
        if job_post.status != JobPostStatus.ACTIVE:
            raise ConflictError("Job post is not accepting applications")
        if self.get_caregiver_application(actor.id, job_post.id):
            raise ConflictError("You have already applied for this job")

        try:
            updated = self.db.query(JobPostModel).filter(
                JobPostModel.id == job_post.id,
                JobPostModel.version == job_post.version,
            ).update({"version": job_post.version + 1}, synchronize_session=False)
            if updated != 1:
                self.db.rollback()
                raise ConflictError("Job post changed concurrently; reload and retry")

            self.db.add(ApplicationModel(
                id=new_id("APP"),
                job_post_id=job_post.id,
                caregiver_id=actor.id,
                applied_at=utc_now(),
            ))
            self.db.commit()
        except ConflictError:
            raise
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(job_post)

        logger.info(f"照護員 {actor.id} 應徵職缺 {job_post.id}")
        self.audit_service.record(actor.id, actor.table, "Applied to job post", "JobPost", job_post.id)
        self.notification_service.send(
            recipient_id=job_post.family_id,
            recipient_kind=RecipientKind.FAMILY,
            notification_type=NotificationType.JOB_APPLICATION,
            message=f"{caregiver.name} applied to care for {job_post.elder_name}",
            job_post_id=job_post.id,
        )
        return job_post_to_schema(job_post)

    def list_application_history(self, actor: Actor, page: int = 1, limit: int = 10) -> Page[JobPost]:
        """照護員應徵過的職缺（最近應徵的在前）"""
        if not isinstance(actor, CaregiverActor):
            raise ForbiddenError("Only caregivers have an application history")

        query = self.db.query(JobPostModel).join(
            ApplicationModel, ApplicationModel.job_post_id == JobPostModel.id
        ).filter(
            ApplicationModel.caregiver_id == actor.id
        ).order_by(ApplicationModel.applied_at.desc())

        rows, total, total_pages = paginate(query, page, limit)
        return Page[JobPost](
            items=[job_post_to_schema(row) for row in rows],
            total=total,
            total_pages=total_pages,
            current_page=page,
        )
