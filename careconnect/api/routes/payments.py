"""
付款相關 API 路由
"""
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Header, Query, Request
from starlette.concurrency import run_in_threadpool

from careconnect.api.dependencies import CurrentActor, get_payment_service
from careconnect.models.schemas import CreatePaymentIntentRequest, Page, Payment, PaymentIntentResponse, WebhookAck
from careconnect.services.payment_service import PaymentService

router = APIRouter(prefix="/api/payments", tags=["付款"])

Service = Annotated[PaymentService, Depends(get_payment_service)]


@router.post("/create-intent", response_model=PaymentIntentResponse, status_code=201)
def create_payment_intent(request: CreatePaymentIntentRequest, actor: CurrentActor, payment_service: Service):
    """建立付款意圖（家屬）"""
    return payment_service.create_payment_intent(actor, request)


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    payment_service: Service,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
):
    """金流服務 webhook（簽章必須以原始請求內容驗證）"""
    payload = await request.body()
    return await run_in_threadpool(payment_service.handle_webhook, payload, stripe_signature)


@router.get("/family", response_model=Page[Payment])
def list_family_payments(
    actor: CurrentActor,
    payment_service: Service,
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
):
    """家屬付款紀錄"""
    return payment_service.list_family_payments(actor, page=page, limit=limit, status=status)


@router.get("/caregiver", response_model=Page[Payment])
def list_caregiver_payments(
    actor: CurrentActor,
    payment_service: Service,
    page: int = Query(1),
    limit: int = Query(10),
    status: Optional[str] = Query(None),
):
    """照護員收款紀錄"""
    return payment_service.list_caregiver_payments(actor, page=page, limit=limit, status=status)


@router.get("/{payment_id}", response_model=Payment)
def get_payment(payment_id: str, actor: CurrentActor, payment_service: Service):
    """付款明細（當事人）"""
    return payment_service.get_payment(actor, payment_id)
