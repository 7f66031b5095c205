"""
狀態枚舉（預約、職缺、付款、收款帳戶、照護員審核）
"""
from enum import Enum


class BookingStatus(str, Enum):
    """預約服務狀態"""
    PENDING = "PENDING"  # 家屬建立，等待照護員回覆
    ACCEPTED = "ACCEPTED"  # 照護員已接受
    IN_PROGRESS = "IN_PROGRESS"  # 服務進行中
    COMPLETED = "COMPLETED"  # 服務完成
    CANCELED = "CANCELED"  # 家屬取消
    REJECTED = "REJECTED"  # 照護員拒絕
    EXPIRED = "EXPIRED"  # 逾時未接受（保留給排程清理）


class BookingPaymentStatus(str, Enum):
    """預約的付款進度（與服務狀態分開追蹤）"""
    UNPAID = "UNPAID"
    HOLD = "HOLD"
    PAID = "PAID"
    REFUNDED = "REFUNDED"


class JobPostStatus(str, Enum):
    """職缺狀態"""
    ACTIVE = "ACTIVE"
    EXPIRE = "EXPIRE"


class PaymentStatus(str, Enum):
    """付款狀態"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class TransferStatus(str, Enum):
    """撥款給照護員的狀態"""
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class ConnectAccountStatus(str, Enum):
    """照護員收款帳戶狀態"""
    NOT_CREATED = "NOT_CREATED"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    RESTRICTED = "RESTRICTED"


class VerifiedStatus(str, Enum):
    """照護員身分驗證狀態"""
    VERIFIED = "VERIFIED"
    UNVERIFIED = "UN-VERIFIED"


class BackgroundCheckStatus(str, Enum):
    """照護員背景調查狀態"""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class RecipientKind(str, Enum):
    """通知接收者類型"""
    FAMILY = "family"
    CAREGIVER = "caregiver"
