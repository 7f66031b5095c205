"""
使用者相關資料模型（家屬、照護員）
"""
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Enum as SQLEnum
from sqlalchemy.sql import func
from careconnect.core.database import Base
from careconnect.models.state import (
    VerifiedStatus,
    BackgroundCheckStatus,
    ConnectAccountStatus,
)


class FamilyModel(Base):
    """家屬資料表模型"""
    __tablename__ = "families"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class CaregiverModel(Base):
    """照護員資料表模型（收款帳戶欄位內嵌於此）"""
    __tablename__ = "caregivers"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    skills = Column(JSON, nullable=False, default=list)
    verified_status = Column(
        SQLEnum(VerifiedStatus), nullable=False, default=VerifiedStatus.UNVERIFIED, index=True
    )
    background_check_status = Column(
        SQLEnum(BackgroundCheckStatus), nullable=False, default=BackgroundCheckStatus.PENDING, index=True
    )

    # 收款帳戶（只由 ConnectAccountService 變更）
    stripe_account_id = Column(String, unique=True, nullable=True, index=True)
    account_status = Column(
        SQLEnum(ConnectAccountStatus), nullable=False, default=ConnectAccountStatus.NOT_CREATED
    )
    onboarding_complete = Column(Boolean, nullable=False, default=False)
    details_submitted = Column(Boolean, nullable=False, default=False)
    charges_enabled = Column(Boolean, nullable=False, default=False)
    payouts_enabled = Column(Boolean, nullable=False, default=False)
    capabilities = Column(JSON, nullable=True)
    restriction_reason = Column(String, nullable=True)
    account_updated_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
