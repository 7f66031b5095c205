"""
資料模型模組
"""
from careconnect.models.user import FamilyModel, CaregiverModel
from careconnect.models.booking import BookingModel
from careconnect.models.job import JobPostModel, ApplicationModel
from careconnect.models.payment import PaymentModel, ProcessedWebhookEventModel
from careconnect.models.audit import AuditLogModel, NotificationModel
from careconnect.models.schemas import (
    Page,
    Booking,
    CreateBookingRequest,
    JobPost,
    Application,
    CreateJobPostRequest,
    CaregiverMatch,
    Caregiver,
    Payment,
    PaymentIntentResponse,
    ConnectAccount,
    AuditLog,
)

__all__ = [
    "FamilyModel",
    "CaregiverModel",
    "BookingModel",
    "JobPostModel",
    "ApplicationModel",
    "PaymentModel",
    "ProcessedWebhookEventModel",
    "AuditLogModel",
    "NotificationModel",
    "Page",
    "Booking",
    "CreateBookingRequest",
    "JobPost",
    "Application",
    "CreateJobPostRequest",
    "CaregiverMatch",
    "Caregiver",
    "Payment",
    "PaymentIntentResponse",
    "ConnectAccount",
    "AuditLog",
]
