"""
FastAPI 依賴注入
"""
from typing import Annotated, Optional
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from careconnect.core.database import get_db
from careconnect.core.errors import ForbiddenError
from careconnect.core.identity import Actor, AdminActor
from careconnect.core.security import authenticate_token
from careconnect.services.application_service import ApplicationService
from careconnect.services.audit_service import AuditService
from careconnect.services.booking_service import BookingService
from careconnect.services.caregiver_service import CaregiverService
from careconnect.services.connect_account_service import ConnectAccountService
from careconnect.services.job_service import JobService
from careconnect.services.payment_processor import PaymentProcessor
from careconnect.services.payment_service import PaymentService

# OAuth2 設定（令牌由外部登入服務簽發；缺少令牌時由 authenticate_token 回報 401）
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

DbSession = Annotated[Session, Depends(get_db)]


def get_current_actor(token: Annotated[Optional[str], Depends(oauth2_scheme)]) -> Actor:
    """取得當前呼叫者（從 Token）"""
    return authenticate_token(token)


def require_admin(actor: Annotated[Actor, Depends(get_current_actor)]) -> AdminActor:
    """要求管理員權限"""
    if not isinstance(actor, AdminActor):
        raise ForbiddenError("Admin access required")
    return actor


def get_payment_processor(request: Request) -> PaymentProcessor:
    """取得應用程式建立時注入的金流服務"""
    return request.app.state.payment_processor


def get_booking_service(db: DbSession) -> BookingService:
    return BookingService(db)


def get_job_service(db: DbSession) -> JobService:
    return JobService(db)


def get_application_service(db: DbSession) -> ApplicationService:
    return ApplicationService(db)


def get_caregiver_service(db: DbSession) -> CaregiverService:
    return CaregiverService(db)


def get_audit_service(db: DbSession) -> AuditService:
    return AuditService(db)


def get_payment_service(
    db: DbSession,
    processor: Annotated[PaymentProcessor, Depends(get_payment_processor)],
) -> PaymentService:
    return PaymentService(db, processor)


def get_connect_account_service(
    db: DbSession,
    processor: Annotated[PaymentProcessor, Depends(get_payment_processor)],
) -> ConnectAccountService:
    return ConnectAccountService(db, processor)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
