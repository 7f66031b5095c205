"""
職缺相關資料模型
"""
from sqlalchemy import Column, String, Integer, Float, Date, DateTime, JSON, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from careconnect.core.database import Base
from careconnect.models.state import JobPostStatus


class JobPostModel(Base):
    """職缺資料表模型"""
    __tablename__ = "job_posts"

    id = Column(String, primary_key=True, index=True)
    family_id = Column(String, ForeignKey("families.id"), nullable=False, index=True)
    elder_name = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String, nullable=False)  # HH:MM
    duration_hours = Column(Float, nullable=False)
    salary = Column(Float, nullable=False)
    location = Column(String, nullable=False)
    status = Column(SQLEnum(JobPostStatus), nullable=False, default=JobPostStatus.ACTIVE, index=True)
    skill_required = Column(JSON, nullable=False)

    # 每次寫入應徵紀錄時遞增，用於並行寫入檢查
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # 關聯
    applications = relationship(
        "ApplicationModel",
        back_populates="job_post",
        cascade="all, delete-orphan",
        order_by="ApplicationModel.applied_at",
    )


class ApplicationModel(Base):
    """應徵紀錄資料表模型（隸屬於職缺）"""
    __tablename__ = "job_applications"

    id = Column(String, primary_key=True, index=True)
    job_post_id = Column(String, ForeignKey("job_posts.id", ondelete="CASCADE"), nullable=False, index=True)
    caregiver_id = Column(String, ForeignKey("caregivers.id"), nullable=False, index=True)
    applied_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    # 關聯
    job_post = relationship("JobPostModel", back_populates="applications")
