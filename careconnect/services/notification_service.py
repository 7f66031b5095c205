"""
通知服務
"""
from typing import Optional
from sqlalchemy.orm import Session

from careconnect.core.ids import new_id
from careconnect.core.logger import setup_logger
from careconnect.core.time_utils import utc_now
from careconnect.models.audit import NotificationModel
from careconnect.models.state import RecipientKind

# 設置 logger
logger = setup_logger(__name__)


class NotificationType:
    """通知類型"""
    NEW_BOOKING_REQUEST = "NEW_BOOKING_REQUEST"
    BOOKING_ACCEPTED = "BOOKING_ACCEPTED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    BOOKING_STARTED = "BOOKING_STARTED"
    BOOKING_COMPLETED = "BOOKING_COMPLETED"
    BOOKING_CANCELED = "BOOKING_CANCELED"
    NEW_JOB_POST = "NEW_JOB_POST"
    JOB_APPLICATION = "JOB_APPLICATION"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_FAILED = "PAYMENT_FAILED"


class NotificationService:
    """通知服務（盡力送達，失敗不影響觸發它的操作）"""

    def __init__(self, db: Session):
        """
        初始化通知服務

        參數:
            db: 資料庫會話
        """
        self.db = db

    def send(
        self,
        recipient_id: str,
        recipient_kind: RecipientKind,
        notification_type: str,
        message: str,
        booking_id: Optional[str] = None,
        job_post_id: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> bool:
        """
        發送通知給指定的接收者

        參數:
            recipient_id: 接收者 ID
            recipient_kind: 接收者類型（家屬或照護員）
            notification_type: 通知類型
            message: 通知內容
            booking_id / job_post_id / payment_id: 關聯資料（可選）

        返回:
            bool: 是否送出成功
        """
        kind = getattr(recipient_kind, "value", recipient_kind)
        try:
            kind = RecipientKind(recipient_kind).value
            self.db.add(NotificationModel(
                id=new_id("NTF"),
                recipient_id=recipient_id,
                recipient_kind=kind,
                type=notification_type,
                message=message,
                booking_id=booking_id,
                job_post_id=job_post_id,
                payment_id=payment_id,
                is_read=False,
                created_at=utc_now(),
            ))
            self.db.commit()
            logger.info(f"已通知 {kind} {recipient_id}：{notification_type}")
            return True
        except Exception as e:
            self.db.rollback()
            logger.warning(f"通知發送失敗：{kind} {recipient_id} {notification_type}（{e}）", exc_info=True)
            return False
