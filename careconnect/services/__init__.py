"""
服務層模組
"""
from careconnect.services.audit_service import AuditService
from careconnect.services.notification_service import NotificationService, NotificationType
from careconnect.services.booking_service import BookingService
from careconnect.services.job_service import JobService
from careconnect.services.application_service import ApplicationService
from careconnect.services.caregiver_service import CaregiverService
from careconnect.services.payment_processor import PaymentProcessor, StripePaymentProcessor
from careconnect.services.payment_service import PaymentService
from careconnect.services.connect_account_service import ConnectAccountService

__all__ = [
    "AuditService",
    "NotificationService",
    "NotificationType",
    "BookingService",
    "JobService",
    "ApplicationService",
    "CaregiverService",
    "PaymentProcessor",
    "StripePaymentProcessor",
    "PaymentService",
    "ConnectAccountService",
]
