"""
付款相關資料模型
"""
from sqlalchemy import (
    Column, String, Float, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.sql import func
from careconnect.core.database import Base
from careconnect.models.state import PaymentStatus, TransferStatus


class PaymentModel(Base):
    """付款資料表模型（每組 職缺/照護員/家屬 最多一筆）"""
    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("job_post_id", "caregiver_id", "family_id", name="uq_payments_job_caregiver_family"),
    )

    id = Column(String, primary_key=True, index=True)
    family_id = Column(String, ForeignKey("families.id"), nullable=False, index=True)
    caregiver_id = Column(String, ForeignKey("caregivers.id"), nullable=False, index=True)
    job_post_id = Column(String, nullable=False, index=True)

    amount = Column(Float, nullable=False)
    platform_fee = Column(Float, nullable=False, default=0)
    net_amount = Column(Float, nullable=False)

    # 金流服務端編號（建立付款意圖後才寫入）
    payment_intent_id = Column(String, unique=True, nullable=True, index=True)
    payment_status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)

    destination_account_id = Column(String, nullable=False, index=True)
    transfer_id = Column(String, nullable=True, index=True)
    transfer_status = Column(SQLEnum(TransferStatus), nullable=False, default=TransferStatus.PENDING)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ProcessedWebhookEventModel(Base):
    """已處理的 webhook 事件（重送時用來判斷是否已套用）"""
    __tablename__ = "processed_webhook_events"

    event_id = Column(String, primary_key=True)
    event_type = Column(String, nullable=False)
    processed_at = Column(DateTime, nullable=False)
