"""
照護員審核服務（管理員）
"""
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session

from careconnect.core.errors import ForbiddenError, NotFoundError, ValidationError
from careconnect.core.identity import Actor, AdminActor
from careconnect.core.logger import setup_logger
from careconnect.core.pagination import paginate
from careconnect.models.schemas import Caregiver, Page, UpdateVerificationRequest
from careconnect.models.state import BackgroundCheckStatus, VerifiedStatus
from careconnect.models.user import CaregiverModel
from careconnect.services.audit_service import AuditService

# 設置 logger
logger = setup_logger(__name__)


def caregiver_to_schema(caregiver: CaregiverModel) -> Caregiver:
    return Caregiver(
        id=caregiver.id,
        name=caregiver.name,
        email=caregiver.email,
        phone=caregiver.phone,
        skills=list(caregiver.skills or []),
        verified_status=caregiver.verified_status,
        background_check_status=caregiver.background_check_status,
        account_status=caregiver.account_status,
    )


class CaregiverService:
    """照護員審核服務"""

    def __init__(self, db: Session, audit_service: Optional[AuditService] = None):
        self.db = db
        self.audit_service = audit_service or AuditService(db)

    def update_verification(self, actor: Actor, caregiver_id: str, request: UpdateVerificationRequest) -> Caregiver:
        """
        更新照護員的身分驗證與背景調查狀態

        參數:
            actor: 呼叫者（必須是管理員）
            caregiver_id: 照護員 ID
            request: 至少包含一個欄位

        返回:
            Caregiver: 更新後的照護員
        """
        if not isinstance(actor, AdminActor):
            raise ForbiddenError("Only admin can verify caregivers")
        if request.verified_status is None and request.background_check_status is None:
            raise ValidationError("Provide verified_status or background_check_status")

        caregiver = self.db.query(CaregiverModel).filter(CaregiverModel.id == caregiver_id).first()
        if not caregiver:
            raise NotFoundError("Caregiver not found")

        changes = []
        try:
            if request.verified_status is not None:
                caregiver.verified_status = request.verified_status
                changes.append(f"verified status to {request.verified_status.value}")
            if request.background_check_status is not None:
                caregiver.background_check_status = request.background_check_status
                changes.append(f"background check to {request.background_check_status.value}")
            self.db.commit()
            self.db.refresh(caregiver)
        except Exception:
            self.db.rollback()
            raise

        action = "Updated caregiver " + " and ".join(changes)
        logger.info(f"管理員 {actor.id}：{action}（{caregiver.id}）")
        self.audit_service.record(actor.id, actor.table, action, "Care", caregiver.id)
        return caregiver_to_schema(caregiver)

    def list_pending_caregivers(self, actor: Actor, page: int = 1, limit: int = 10) -> Page[Caregiver]:
        """待審核的照護員（背景調查 PENDING 或尚未驗證）"""
        if not isinstance(actor, AdminActor):
            raise ForbiddenError("Only admin can review caregivers")
        query = self.db.query(CaregiverModel).filter(or_(
            CaregiverModel.background_check_status == BackgroundCheckStatus.PENDING,
            CaregiverModel.verified_status != VerifiedStatus.VERIFIED,
        )).order_by(CaregiverModel.created_at, CaregiverModel.id)

        rows, total, total_pages = paginate(query, page, limit)
        return Page[Caregiver](
            items=[caregiver_to_schema(row) for row in rows],
            total=total,
            total_pages=total_pages,
            current_page=page,
        )
