"""
管理員相關 API 路由
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query

from careconnect.api.dependencies import (
    get_audit_service,
    get_caregiver_service,
    get_connect_account_service,
    require_admin,
)
from careconnect.core.identity import AdminActor
from careconnect.models.schemas import (
    AuditLog,
    Caregiver,
    ConnectAccount,
    Page,
    RestrictAccountRequest,
    UpdateVerificationRequest,
)
from careconnect.services.audit_service import AuditService
from careconnect.services.caregiver_service import CaregiverService
from careconnect.services.connect_account_service import ConnectAccountService

router = APIRouter(prefix="/api/admin", tags=["管理員"])

Admin = Annotated[AdminActor, Depends(require_admin)]
Audits = Annotated[AuditService, Depends(get_audit_service)]
Caregivers = Annotated[CaregiverService, Depends(get_caregiver_service)]
Connect = Annotated[ConnectAccountService, Depends(get_connect_account_service)]


@router.get("/audit-logs", response_model=Page[AuditLog])
def list_audit_logs(
    admin: Admin,
    audit_service: Audits,
    page: int = Query(1),
    limit: int = Query(10),
    actor_table: Optional[str] = Query(None),
    target_table: Optional[str] = Query(None),
    target_id: Optional[str] = Query(None),
):
    """稽核紀錄（新到舊）"""
    return audit_service.list_audit_logs(
        page=page, limit=limit, actor_table=actor_table, target_table=target_table, target_id=target_id
    )


@router.get("/caregivers/pending", response_model=Page[Caregiver])
def list_pending_caregivers(
    admin: Admin,
    caregiver_service: Caregivers,
    page: int = Query(1),
    limit: int = Query(10),
):
    """待審核的照護員"""
    return caregiver_service.list_pending_caregivers(admin, page=page, limit=limit)


@router.patch("/caregivers/{caregiver_id}/verification", response_model=Caregiver)
def update_caregiver_verification(
    caregiver_id: str, request: UpdateVerificationRequest, admin: Admin, caregiver_service: Caregivers
):
    """更新照護員驗證狀態"""
    return caregiver_service.update_verification(admin, caregiver_id, request)


@router.get("/connect-accounts", response_model=Page[ConnectAccount])
def list_connect_accounts(
    admin: Admin,
    connect_service: Connect,
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    """收款帳戶列表"""
    return connect_service.list_accounts(admin, page=page, limit=limit, status=status, search=search)


@router.post("/connect-accounts/{account_id}/refresh", response_model=ConnectAccount)
def refresh_connect_account(account_id: str, admin: Admin, connect_service: Connect):
    """從金流服務重新同步帳戶狀態"""
    return connect_service.refresh_account(admin, account_id)


@router.post("/connect-accounts/{account_id}/approve", response_model=ConnectAccount)
def approve_connect_account(account_id: str, admin: Admin, connect_service: Connect):
    """核准帳戶"""
    return connect_service.approve_account(admin, account_id)


@router.post("/connect-accounts/{account_id}/restrict", response_model=ConnectAccount)
def restrict_connect_account(
    account_id: str, request: RestrictAccountRequest, admin: Admin, connect_service: Connect
):
    """限制帳戶"""
    return connect_service.restrict_account(admin, account_id, request.reason)
