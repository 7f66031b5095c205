"""
預約管理服務
"""
import math
from typing import List, Optional
from sqlalchemy.orm import Session

from careconnect.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from careconnect.core.identity import Actor, AdminActor, CaregiverActor, FamilyActor, Role
from careconnect.core.ids import new_id
from careconnect.core.logger import setup_logger
from careconnect.core.pagination import paginate
from careconnect.core.time_utils import compute_end_time, is_valid_hhmm, utc_now
from careconnect.models.booking import BookingModel
from careconnect.models.job import JobPostModel
from careconnect.models.schemas import Booking, CreateBookingRequest, Page, Schedule
from careconnect.models.state import BookingStatus, BookingPaymentStatus, RecipientKind
from careconnect.models.user import CaregiverModel
from careconnect.services.audit_service import AuditService
from careconnect.services.notification_service import NotificationService, NotificationType
from careconnect.services.status_machine import BookingAction, next_booking_status, role_may_perform

# 設置 logger
logger = setup_logger(__name__)

MIN_DURATION_HOURS = 0.5
MAX_DURATION_HOURS = 24
MAX_NOTES_LENGTH = 500
MAX_REASON_LENGTH = 300
DEFAULT_REJECTION_REASON = "No reason provided"

# 各操作的稽核文字與通知類型
_ACTION_EFFECTS = {
    BookingAction.ACCEPT: ("Accepted booking", NotificationType.BOOKING_ACCEPTED, "Booking accepted for {elder}"),
    BookingAction.REJECT: ("Rejected booking", NotificationType.BOOKING_REJECTED, "Booking rejected for {elder}"),
    BookingAction.START: ("Started booking", NotificationType.BOOKING_STARTED, "Booking started for {elder}"),
    BookingAction.COMPLETE: ("Completed booking", NotificationType.BOOKING_COMPLETED, "Booking completed for {elder}"),
    BookingAction.CANCEL: ("Canceled booking", NotificationType.BOOKING_CANCELED, "Booking canceled for {elder}"),
}


def normalize_skills(skills: Optional[List[str]]) -> List[str]:
    """去除空白與重複的技能，保留原本順序"""
    result = []
    for skill in skills or []:
        skill = (skill or "").strip()
        if skill and skill not in result:
            result.append(skill)
    return result


class BookingService:
    """預約管理服務"""

    def __init__(
        self,
        db: Session,
        audit_service: Optional[AuditService] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        初始化預約服務

        參數:
            db: 資料庫會話
            audit_service: 稽核服務（可選，預設使用同一會話建立）
            notification_service: 通知服務（可選，預設使用同一會話建立）
        """
        self.db = db
        self.audit_service = audit_service or AuditService(db)
        self.notification_service = notification_service or NotificationService(db)

    # ---------- 權限 ----------

    @staticmethod
    def _is_party(actor: Actor, booking: BookingModel) -> bool:
        """呼叫者是否為預約的當事人"""
        if isinstance(actor, FamilyActor):
            return booking.family_id == actor.id
        if isinstance(actor, CaregiverActor):
            return booking.caregiver_id == actor.id
        return False

    def _authorize(self, operation: str, actor: Actor, booking: Optional[BookingModel] = None) -> None:
        """
        檢查呼叫者是否可以對預約執行操作

        參數:
            operation: "create"、"update_notes" 或 BookingAction 的值
            actor: 呼叫者
            booking: 目標預約（建立時為 None）
        """
        if operation == "create":
            if not isinstance(actor, FamilyActor):
                raise ForbiddenError("Only family can create bookings")
            return

        if operation == "update_notes":
            if not isinstance(actor, FamilyActor) or booking.family_id != actor.id:
                raise ForbiddenError("Only the family that created the booking can update it")
            return

        action = BookingAction(operation)
        if not role_may_perform(action, actor.role):
            allowed = "family" if action == BookingAction.CANCEL else "caregiver"
            if action in (BookingAction.START, BookingAction.COMPLETE):
                allowed = "family or caregiver"
            raise ForbiddenError(f"Only {allowed} can {action.value} a booking")
        if not self._is_party(actor, booking):
            raise ForbiddenError("You are not a party to this booking")

    # ---------- 查詢 ----------

    def _get_booking_model(self, booking_id: str) -> BookingModel:
        """取得預約資料列，不存在時拋出 NotFoundError"""
        booking = self.db.query(BookingModel).filter(BookingModel.id == booking_id).first()
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def get_booking(self, actor: Actor, booking_id: str) -> Booking:
        """取得單一預約（當事人或管理員）"""
        booking = self.db.query(BookingModel).filter(BookingModel.id == booking_id).first()
        if not booking or not (isinstance(actor, AdminActor) or self._is_party(actor, booking)):
            raise NotFoundError("Booking not found or access denied")
        return self._to_schema(booking)

    def list_bookings(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
    ) -> Page[Booking]:
        """
        取得自己的預約列表（家屬或照護員，新到舊）

        參數:
            actor: 呼叫者
            page: 頁碼
            limit: 每頁筆數
            status: 狀態篩選（可選）
        """
        if isinstance(actor, FamilyActor):
            query = self.db.query(BookingModel).filter(BookingModel.family_id == actor.id)
        elif isinstance(actor, CaregiverActor):
            query = self.db.query(BookingModel).filter(BookingModel.caregiver_id == actor.id)
        else:
            raise ForbiddenError("Only family or caregiver can list their bookings")

        if status:
            try:
                query = query.filter(BookingModel.status == BookingStatus(status))
            except ValueError:
                raise ValidationError(f"Unknown booking status: {status}", field="status")

        rows, total, total_pages = paginate(query.order_by(BookingModel.created_at.desc()), page, limit)
        return Page[Booking](
            items=[self._to_schema(row) for row in rows],
            total=total,
            total_pages=total_pages,
            current_page=page,
        )

    # ---------- 建立 ----------

    def _validate_create(self, request: CreateBookingRequest) -> List[str]:
        """檢查建立預約的欄位，返回整理後的技能列表"""
        if not request.caregiver_id or not request.caregiver_id.strip():
            raise ValidationError("Caregiver id is required", field="caregiver_id")
        if not request.elder_name or not request.elder_name.strip():
            raise ValidationError("Elder name is required", field="elder_name")
        if not request.location or not request.location.strip():
            raise ValidationError("Location is required", field="location")
        skills = normalize_skills(request.skills)
        if not skills:
            raise ValidationError("At least one skill is required", field="skills")
        if not is_valid_hhmm(request.schedule.start_time):
            raise ValidationError("Valid startTime HH:MM required", field="schedule.start_time")
        duration = request.schedule.duration_hours
        if duration is None or not MIN_DURATION_HOURS <= duration <= MAX_DURATION_HOURS:
            raise ValidationError(
                "Duration must be between 0.5 and 24 hours", field="schedule.duration_hours"
            )
        if request.hourly_rate is None or not math.isfinite(request.hourly_rate) or request.hourly_rate < 0:
            raise ValidationError("Hourly rate must be positive", field="hourly_rate")
        if request.notes and len(request.notes) > MAX_NOTES_LENGTH:
            raise ValidationError("Notes cannot exceed 500 characters", field="notes")
        return skills

    def create_booking(self, actor: Actor, request: CreateBookingRequest) -> Booking:
        """
        家屬建立預約（狀態 PENDING）

        total_amount = 時薪 × 時數，並寫入時薪與技能快照。

        參數:
            actor: 呼叫者（必須是家屬）
            request: 建立預約請求

        返回:
            Booking: 建立的預約
        """
        self._authorize("create", actor)
        skills = self._validate_create(request)

        caregiver = self.db.query(CaregiverModel).filter(CaregiverModel.id == request.caregiver_id).first()
        if not caregiver:
            raise NotFoundError("Caregiver not found")

        if request.job_post_id:
            job_post = self.db.query(JobPostModel).filter(
                JobPostModel.id == request.job_post_id,
                JobPostModel.family_id == actor.id,
            ).first()
            if not job_post:
                raise NotFoundError("Job post not found")

        try:
            booking = BookingModel(
                id=new_id("BKG"),
                family_id=actor.id,
                caregiver_id=caregiver.id,
                job_post_id=request.job_post_id or None,
                elder_name=request.elder_name.strip(),
                location=request.location.strip(),
                skills=skills,
                schedule_date=request.schedule.date,
                start_time=request.schedule.start_time,
                duration_hours=request.schedule.duration_hours,
                hourly_rate=request.hourly_rate,
                total_amount=round(request.hourly_rate * request.schedule.duration_hours, 2),
                status=BookingStatus.PENDING,
                payment_status=BookingPaymentStatus.UNPAID,
                notes=request.notes,
                rate_snapshot=request.hourly_rate,
                skill_snapshot=list(skills),
                version=1,
            )
            self.db.add(booking)
            self.db.commit()
            self.db.refresh(booking)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"家屬 {actor.id} 建立預約 {booking.id}（照護員 {caregiver.id}）")
        self.audit_service.record(actor.id, actor.table, "Created booking", "Booking", booking.id)
        self.notification_service.send(
            recipient_id=booking.caregiver_id,
            recipient_kind=RecipientKind.CAREGIVER,
            notification_type=NotificationType.NEW_BOOKING_REQUEST,
            message=f"New booking request for {booking.elder_name} on {booking.schedule_date.isoformat()}",
            booking_id=booking.id,
        )
        return self._to_schema(booking)

    # ---------- 狀態轉換 ----------

    def _transition(self, actor: Actor, booking_id: str, action: BookingAction, changes: dict) -> Booking:
        """
        執行一次狀態轉換

        以「目前狀態未變」為條件更新，同一筆預約的並行操作只會有一個成功；
        成功後寫入一筆稽核紀錄並通知另一方。
        """
        booking = self._get_booking_model(booking_id)
        self._authorize(action.value, actor, booking)

        current = booking.status
        target = next_booking_status(action, current)

        values = dict(changes)
        values["status"] = target
        values["version"] = booking.version + 1
        try:
            updated = self.db.query(BookingModel).filter(
                BookingModel.id == booking.id,
                BookingModel.status == current,
            ).update(values, synchronize_session=False)
            if updated != 1:
                self.db.rollback()
                raise ConflictError("Booking status changed concurrently; reload and retry")
            self.db.commit()
        except ConflictError:
            raise
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(booking)

        logger.info(f"預約 {booking.id}：{current.value} -> {target.value}（{actor.table} {actor.id}）")
        self._after_transition(actor, booking, action)
        return self._to_schema(booking)

    def _after_transition(self, actor: Actor, booking: BookingModel, action: BookingAction) -> None:
        """寫入稽核紀錄並通知另一方"""
        audit_action, notification_type, template = _ACTION_EFFECTS[action]
        self.audit_service.record(actor.id, actor.table, audit_action, "Booking", booking.id)

        # 接受/拒絕通知家屬；取消通知照護員；開始/完成通知非操作的一方
        notify_family = action in (BookingAction.ACCEPT, BookingAction.REJECT) or (
            action in (BookingAction.START, BookingAction.COMPLETE) and actor.role == Role.CARE
        )
        if notify_family:
            recipient_id, recipient_kind = booking.family_id, RecipientKind.FAMILY
        else:
            recipient_id, recipient_kind = booking.caregiver_id, RecipientKind.CAREGIVER

        self.notification_service.send(
            recipient_id=recipient_id,
            recipient_kind=recipient_kind,
            notification_type=notification_type,
            message=template.format(elder=booking.elder_name),
            booking_id=booking.id,
        )

    def accept_booking(self, actor: Actor, booking_id: str) -> Booking:
        """照護員接受預約（PENDING -> ACCEPTED）"""
        return self._transition(actor, booking_id, BookingAction.ACCEPT, {"accepted_at": utc_now()})

    def reject_booking(self, actor: Actor, booking_id: str, reason: Optional[str] = None) -> Booking:
        """照護員拒絕預約（PENDING -> REJECTED）"""
        reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError("Reason cannot exceed 300 characters", field="reason")
        return self._transition(actor, booking_id, BookingAction.REJECT, {"rejection_reason": reason})

    def start_booking(self, actor: Actor, booking_id: str) -> Booking:
        """開始服務（ACCEPTED -> IN_PROGRESS）"""
        return self._transition(actor, booking_id, BookingAction.START, {"started_at": utc_now()})

    def complete_booking(self, actor: Actor, booking_id: str) -> Booking:
        """完成服務（ACCEPTED/IN_PROGRESS -> COMPLETED），並記錄操作方已確認"""
        changes = {"completed_at": utc_now()}
        if actor.role == Role.FAMILY:
            changes["family_acknowledged"] = True
        else:
            changes["caregiver_acknowledged"] = True
        return self._transition(actor, booking_id, BookingAction.COMPLETE, changes)

    def cancel_booking(self, actor: Actor, booking_id: str) -> Booking:
        """家屬取消預約（PENDING/ACCEPTED/IN_PROGRESS -> CANCELED）"""
        return self._transition(
            actor,
            booking_id,
            BookingAction.CANCEL,
            {"canceled_at": utc_now(), "canceled_by_role": actor.role.value},
        )

    # ---------- 其他欄位 ----------

    def update_notes(self, actor: Actor, booking_id: str, notes: Optional[str]) -> Booking:
        """家屬更新預約備註（不影響金額與快照）"""
        booking = self._get_booking_model(booking_id)
        self._authorize("update_notes", actor, booking)
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError("Notes cannot exceed 500 characters", field="notes")

        try:
            booking.notes = notes
            self.db.commit()
            self.db.refresh(booking)
        except Exception:
            self.db.rollback()
            raise

        self.audit_service.record(actor.id, actor.table, "Updated booking notes", "Booking", booking.id)
        return self._to_schema(booking)

    @staticmethod
    def _to_schema(booking: BookingModel) -> Booking:
        """轉換為 Pydantic 模型"""
        return Booking(
            id=booking.id,
            family_id=booking.family_id,
            caregiver_id=booking.caregiver_id,
            job_post_id=booking.job_post_id,
            elder_name=booking.elder_name,
            location=booking.location,
            skills=list(booking.skills or []),
            schedule=Schedule(
                date=booking.schedule_date,
                start_time=booking.start_time,
                duration_hours=booking.duration_hours,
            ),
            end_time=compute_end_time(booking.start_time, booking.duration_hours),
            hourly_rate=booking.hourly_rate,
            total_amount=booking.total_amount,
            status=booking.status,
            payment_status=booking.payment_status,
            notes=booking.notes,
            caregiver_acknowledged=bool(booking.caregiver_acknowledged),
            family_acknowledged=bool(booking.family_acknowledged),
            rate_snapshot=booking.rate_snapshot,
            skill_snapshot=list(booking.skill_snapshot or []),
            accepted_at=booking.accepted_at,
            started_at=booking.started_at,
            completed_at=booking.completed_at,
            canceled_at=booking.canceled_at,
            canceled_by_role=booking.canceled_by_role,
            rejection_reason=booking.rejection_reason,
            created_at=booking.created_at,
        )
