"""
預約相關資料模型
"""
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Date, DateTime, JSON, ForeignKey, Index,
    Enum as SQLEnum,
)
from sqlalchemy.sql import func
from careconnect.core.database import Base
from careconnect.models.state import BookingStatus, BookingPaymentStatus


class BookingModel(Base):
    """
    預約資料表模型

    total_amount、rate_snapshot、skill_snapshot 只在建立時寫入一次，
    之後不會因時薪或照護員資料變動而重算。
    """
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_family_status", "family_id", "status"),
        Index("ix_bookings_caregiver_status", "caregiver_id", "status"),
    )

    id = Column(String, primary_key=True, index=True)
    family_id = Column(String, ForeignKey("families.id"), nullable=False, index=True)
    caregiver_id = Column(String, ForeignKey("caregivers.id"), nullable=False, index=True)
    job_post_id = Column(String, ForeignKey("job_posts.id", ondelete="SET NULL"), nullable=True, index=True)
    elder_name = Column(String, nullable=False)
    location = Column(String, nullable=False)
    skills = Column(JSON, nullable=False)

    # 排班
    schedule_date = Column(Date, nullable=False)
    start_time = Column(String, nullable=False)  # HH:MM
    duration_hours = Column(Float, nullable=False)

    hourly_rate = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(SQLEnum(BookingStatus), nullable=False, default=BookingStatus.PENDING, index=True)
    payment_status = Column(
        SQLEnum(BookingPaymentStatus), nullable=False, default=BookingPaymentStatus.UNPAID, index=True
    )
    notes = Column(String(500), nullable=True)

    caregiver_acknowledged = Column(Boolean, nullable=False, default=False)
    family_acknowledged = Column(Boolean, nullable=False, default=False)

    # 歷史快照
    rate_snapshot = Column(Float, nullable=False)
    skill_snapshot = Column(JSON, nullable=False)

    # 生命週期時間
    accepted_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    canceled_at = Column(DateTime, nullable=True)
    canceled_by_role = Column(String, nullable=True)
    rejection_reason = Column(String(300), nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
