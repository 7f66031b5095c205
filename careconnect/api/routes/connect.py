"""
照護員收款帳戶相關 API 路由
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Header, Request
from starlette.concurrency import run_in_threadpool

from careconnect.api.dependencies import CurrentActor, get_connect_account_service
from careconnect.models.schemas import ConnectAccount, LinkResponse, WebhookAck
from careconnect.services.connect_account_service import ConnectAccountService

router = APIRouter(prefix="/api/connect", tags=["收款帳戶"])

Service = Annotated[ConnectAccountService, Depends(get_connect_account_service)]


@router.post("/account", response_model=ConnectAccount, status_code=201)
def create_account(actor: CurrentActor, connect_service: Service):
    """建立收款帳戶（照護員）"""
    return connect_service.create_account(actor)


@router.post("/onboarding-link", response_model=LinkResponse)
def create_onboarding_link(actor: CurrentActor, connect_service: Service):
    """取得開戶流程連結"""
    return connect_service.create_onboarding_link(actor)


@router.get("/account/status", response_model=ConnectAccount)
def get_account_status(actor: CurrentActor, connect_service: Service):
    """查詢並同步收款帳戶狀態"""
    return connect_service.get_account_status(actor)


@router.post("/dashboard-link", response_model=LinkResponse)
def create_dashboard_link(actor: CurrentActor, connect_service: Service):
    """取得收款帳戶後台登入連結"""
    return connect_service.create_dashboard_link(actor)


@router.post("/webhook", response_model=WebhookAck)
async def connect_webhook(
    request: Request,
    connect_service: Service,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
):
    """Connect webhook（account.updated）"""
    payload = await request.body()
    return await run_in_threadpool(connect_service.handle_webhook, payload, stripe_signature)
