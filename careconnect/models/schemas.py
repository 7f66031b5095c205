"""
Pydantic 資料模型（用於 API 與服務層回傳值）
"""
from datetime import date, datetime
from typing import Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field

from careconnect.models.state import (
    BookingStatus,
    BookingPaymentStatus,
    JobPostStatus,
    PaymentStatus,
    TransferStatus,
    ConnectAccountStatus,
    VerifiedStatus,
    BackgroundCheckStatus,
)

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """分頁結果"""
    items: List[T]
    total: int
    total_pages: int
    current_page: int


# ---------- 預約 ----------

class Schedule(BaseModel):
    """排班資料"""
    date: date
    start_time: str = Field(..., description="開始時間，格式：HH:MM（24 小時制）")
    duration_hours: float = Field(..., description="服務時數，0.5 ~ 24")


class CreateBookingRequest(BaseModel):
    """建立預約請求"""
    caregiver_id: str = Field(..., description="照護員 ID")
    job_post_id: Optional[str] = Field(None, description="關聯職缺 ID（可選）")
    elder_name: str = Field(..., description="長者姓名")
    location: str = Field(..., description="服務地點")
    skills: List[str] = Field(..., description="需要的技能")
    schedule: Schedule
    hourly_rate: float = Field(..., description="時薪")
    notes: Optional[str] = Field(None, description="備註（最多 500 字）")


class RejectBookingRequest(BaseModel):
    """拒絕預約請求"""
    reason: Optional[str] = Field(None, description="拒絕原因（最多 300 字）")


class UpdateBookingNotesRequest(BaseModel):
    """更新預約備註請求"""
    notes: Optional[str] = Field(None, description="備註（最多 500 字）")


class Booking(BaseModel):
    """預約資料模型"""
    id: str
    family_id: str
    caregiver_id: str
    job_post_id: Optional[str] = None
    elder_name: str
    location: str
    skills: List[str]
    schedule: Schedule
    end_time: Optional[str] = None
    hourly_rate: float
    total_amount: float
    status: BookingStatus
    payment_status: BookingPaymentStatus
    notes: Optional[str] = None
    caregiver_acknowledged: bool = False
    family_acknowledged: bool = False
    rate_snapshot: float
    skill_snapshot: List[str]
    accepted_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    canceled_by_role: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None


# ---------- 職缺 ----------

class CreateJobPostRequest(BaseModel):
    """建立職缺請求"""
    elder_name: str = Field(..., description="長者姓名")
    date: date  # 服務日期
    start_time: str = Field(..., description="開始時間，格式：HH:MM")
    duration_hours: float = Field(..., description="服務時數，0.5 ~ 24")
    salary: float = Field(..., description="薪資")
    location: str = Field(..., description="服務地點")
    skill_required: List[str] = Field(..., description="需要的技能")


class UpdateJobStatusRequest(BaseModel):
    """更新職缺狀態請求"""
    status: str = Field(..., description="ACTIVE 或 EXPIRE")


class Application(BaseModel):
    """應徵紀錄模型"""
    id: str
    job_post_id: str
    caregiver_id: str
    applied_at: datetime


class JobPost(BaseModel):
    """職缺資料模型"""
    id: str
    family_id: str
    elder_name: str
    date: date
    start_time: str
    duration_hours: float
    salary: float
    location: str
    status: JobPostStatus
    skill_required: List[str]
    applications: List[Application] = []
    created_at: Optional[datetime] = None


class CaregiverMatch(BaseModel):
    """職缺配對結果"""
    caregiver_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    skills: List[str]
    match_score: int


# ---------- 照護員 ----------

class Caregiver(BaseModel):
    """照護員資料模型（不含收款帳戶細節）"""
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    skills: List[str]
    verified_status: VerifiedStatus
    background_check_status: BackgroundCheckStatus
    account_status: ConnectAccountStatus


class UpdateVerificationRequest(BaseModel):
    """管理員審核照護員請求"""
    verified_status: Optional[VerifiedStatus] = None
    background_check_status: Optional[BackgroundCheckStatus] = None


# ---------- 付款 ----------

class CreatePaymentIntentRequest(BaseModel):
    """建立付款意圖請求"""
    job_post_id: str = Field(..., description="職缺 ID")
    caregiver_id: str = Field(..., description="照護員 ID")


class PaymentIntentResponse(BaseModel):
    """付款意圖回應（只回傳前端確認用的 client secret）"""
    payment_id: str
    client_secret: str
    amount: float
    platform_fee: float
    net_amount: float
    currency: str


class Payment(BaseModel):
    """付款資料模型"""
    id: str
    family_id: str
    caregiver_id: str
    job_post_id: str
    amount: float
    platform_fee: float
    net_amount: float
    payment_intent_id: Optional[str] = None
    payment_status: PaymentStatus
    destination_account_id: str
    transfer_id: Optional[str] = None
    transfer_status: TransferStatus
    created_at: Optional[datetime] = None


class WebhookAck(BaseModel):
    """Webhook 回應"""
    received: bool = True
    duplicate: bool = False


# ---------- 收款帳戶 ----------

class ConnectAccount(BaseModel):
    """照護員收款帳戶狀態"""
    caregiver_id: str
    caregiver_name: Optional[str] = None
    account_id: Optional[str] = None
    account_status: ConnectAccountStatus
    onboarding_complete: bool = False
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    capabilities: Optional[dict] = None
    restriction_reason: Optional[str] = None
    updated_at: Optional[datetime] = None


class LinkResponse(BaseModel):
    """外部連結回應（開戶、後台登入）"""
    url: str


class RestrictAccountRequest(BaseModel):
    """限制收款帳戶請求"""
    reason: str = Field(..., description="限制原因")


# ---------- 稽核 ----------

class AuditLog(BaseModel):
    """稽核紀錄模型"""
    id: str
    actor_id: str
    actor_table: str
    action: str
    target_table: str
    target_id: str
    created_at: datetime
