"""
稽核紀錄與通知資料模型
"""
from sqlalchemy import Column, String, Boolean, DateTime
from careconnect.core.database import Base


class AuditLogModel(Base):
    """稽核紀錄資料表模型（只新增，不修改、不刪除）"""
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, index=True)
    actor_id = Column(String, nullable=False, index=True)
    actor_table = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False)
    target_table = Column(String, nullable=False, index=True)
    target_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)


class NotificationModel(Base):
    """通知資料表模型"""
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, index=True)
    recipient_id = Column(String, nullable=False, index=True)
    recipient_kind = Column(String, nullable=False)
    type = Column(String, nullable=False)
    message = Column(String, nullable=False)
    booking_id = Column(String, nullable=True)
    job_post_id = Column(String, nullable=True)
    payment_id = Column(String, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)
