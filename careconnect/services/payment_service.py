"""
付款結算服務

建立付款意圖（同步）與 webhook 對帳（非同步）兩條路徑都只透過
以目前狀態為條件的更新寫入 Payment，因此兩者交錯時結果一致。
"""
import math
from typing import Callable, Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from careconnect.config import PAYMENT_CURRENCY, PLATFORM_FEE_RATE, STRIPE_WEBHOOK_SECRET
from careconnect.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from careconnect.core.identity import Actor, AdminActor, CaregiverActor, FamilyActor
from careconnect.core.ids import new_id
from careconnect.core.logger import setup_logger
from careconnect.core.pagination import paginate
from careconnect.core.time_utils import utc_now
from careconnect.models.job import ApplicationModel, JobPostModel
from careconnect.models.payment import PaymentModel, ProcessedWebhookEventModel
from careconnect.models.schemas import CreatePaymentIntentRequest, Page, Payment, PaymentIntentResponse, WebhookAck
from careconnect.models.state import ConnectAccountStatus, PaymentStatus, RecipientKind, TransferStatus
from careconnect.models.user import CaregiverModel
from careconnect.services.audit_service import AuditService
from careconnect.services.notification_service import NotificationService, NotificationType
from careconnect.services.payment_processor import PaymentProcessor, ProcessorEvent

# 設置 logger
logger = setup_logger(__name__)

# commit 之後才執行的副作用（稽核、通知）
SideEffect = Callable[[], None]


def compute_platform_fee(amount: float, rate: float = PLATFORM_FEE_RATE) -> int:
    """平台費 = amount × rate，四捨五入到整數（0.5 進位）"""
    return int(math.floor(amount * rate + 0.5))


def to_minor_units(amount: float) -> int:
    """金額轉為最小貨幣單位（分）"""
    return int(round(amount * 100))


def payment_to_schema(payment: PaymentModel) -> Payment:
    """轉換為 Pydantic 模型"""
    return Payment(
        id=payment.id,
        family_id=payment.family_id,
        caregiver_id=payment.caregiver_id,
        job_post_id=payment.job_post_id,
        amount=payment.amount,
        platform_fee=payment.platform_fee,
        net_amount=payment.net_amount,
        payment_intent_id=payment.payment_intent_id,
        payment_status=payment.payment_status,
        destination_account_id=payment.destination_account_id,
        transfer_id=payment.transfer_id,
        transfer_status=payment.transfer_status,
        created_at=payment.created_at,
    )


class PaymentService:
    """付款結算服務"""

    def __init__(
        self,
        db: Session,
        processor: PaymentProcessor,
        audit_service: Optional[AuditService] = None,
        notification_service: Optional[NotificationService] = None,
        webhook_secret: str = STRIPE_WEBHOOK_SECRET,
        currency: str = PAYMENT_CURRENCY,
        fee_rate: float = PLATFORM_FEE_RATE,
    ):
        """
        初始化付款服務

        參數:
            db: 資料庫會話
            processor: 金流服務（由應用程式工廠注入）
            audit_service: 稽核服務（可選）
            notification_service: 通知服務（可選）
            webhook_secret: webhook 簽章密鑰
            currency: 付款幣別
            fee_rate: 平台費比例
        """
        self.db = db
        self.processor = processor
        self.audit_service = audit_service or AuditService(db)
        self.notification_service = notification_service or NotificationService(db)
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.fee_rate = fee_rate

        # 事件類型 -> 處理函數；每個處理函數各自具備冪等性
        self._handlers: Dict[str, Callable[[ProcessorEvent], List[SideEffect]]] = {
            "payment_intent.succeeded": self._on_intent_succeeded,
            "payment_intent.payment_failed": self._on_intent_failed,
            "transfer.created": self._on_transfer_created,
            "transfer.failed": self._on_transfer_failed,
        }

    # ---------- 建立付款意圖 ----------

    def _check_payable(self, actor: Actor, request: CreatePaymentIntentRequest):
        """檢查付款前提，返回 (職缺, 照護員)"""
        if not isinstance(actor, FamilyActor):
            raise ForbiddenError("Only family can create payments")

        job_post = self.db.query(JobPostModel).filter(JobPostModel.id == request.job_post_id).first()
        if not job_post:
            raise NotFoundError("Job post not found")
        if job_post.family_id != actor.id:
            raise ForbiddenError("You do not own this job post")

        caregiver = self.db.query(CaregiverModel).filter(CaregiverModel.id == request.caregiver_id).first()
        if not caregiver:
            raise NotFoundError("Caregiver not found")

        applied = self.db.query(ApplicationModel).filter(
            ApplicationModel.job_post_id == job_post.id,
            ApplicationModel.caregiver_id == caregiver.id,
        ).first()
        if not applied:
            raise ValidationError("Caregiver has not applied for this job", field="caregiver_id")

        if not (
            caregiver.stripe_account_id
            and caregiver.account_status == ConnectAccountStatus.ACTIVE
            and caregiver.charges_enabled
            and caregiver.payouts_enabled
        ):
            raise ValidationError("Caregiver has not completed payout account setup", field="caregiver_id")

        return job_post, caregiver

    def _get_or_create_pending(self, actor: Actor, job_post: JobPostModel, caregiver: CaregiverModel) -> PaymentModel:
        """
        取得或建立這組 職缺/照護員/家屬 的付款資料列

        已有付款意圖時拋出 ConflictError；沒有付款意圖的資料列代表上次呼叫
        金流服務失敗，沿用同一筆（同一個冪等鍵）。
        """
        existing = self.db.query(PaymentModel).filter(
            PaymentModel.job_post_id == job_post.id,
            PaymentModel.caregiver_id == caregiver.id,
            PaymentModel.family_id == actor.id,
        ).first()
        if existing:
            if existing.payment_intent_id:
                raise ConflictError("Payment already exists for this job and caregiver")
            logger.info(f"沿用尚未建立付款意圖的付款 {existing.id}")
            return existing

        fee = compute_platform_fee(job_post.salary, self.fee_rate)
        payment = PaymentModel(
            id=new_id("PAY"),
            family_id=actor.id,
            caregiver_id=caregiver.id,
            job_post_id=job_post.id,
            amount=job_post.salary,
            platform_fee=fee,
            net_amount=job_post.salary - fee,
            payment_status=PaymentStatus.PENDING,
            destination_account_id=caregiver.stripe_account_id,
            transfer_status=TransferStatus.PENDING,
        )
        try:
            self.db.add(payment)
            self.db.commit()
            self.db.refresh(payment)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Payment already exists for this job and caregiver")
        except Exception:
            self.db.rollback()
            raise
        return payment

    def create_payment_intent(self, actor: Actor, request: CreatePaymentIntentRequest) -> PaymentIntentResponse:
        """
        家屬為已應徵的照護員建立付款意圖

        先寫入 PENDING 付款資料列，再呼叫金流服務；金流服務失敗或逾時時
        資料列維持 PENDING，呼叫者收到可重試的錯誤，結果交由 webhook 確認。

        參數:
            actor: 呼叫者（必須是職缺擁有者）
            request: 職缺 ID 與照護員 ID

        返回:
            PaymentIntentResponse: 前端確認付款用的 client secret 與金額
        """
        job_post, caregiver = self._check_payable(actor, request)
        payment = self._get_or_create_pending(actor, job_post, caregiver)

        result = self.processor.create_payment_intent(
            amount_cents=to_minor_units(payment.amount),
            currency=self.currency,
            destination_account=payment.destination_account_id,
            fee_cents=to_minor_units(payment.platform_fee),
            metadata={
                "payment_id": payment.id,
                "job_post_id": job_post.id,
                "caregiver_id": caregiver.id,
                "family_id": actor.id,
                "elder_name": job_post.elder_name,
            },
            idempotency_key=f"payment-intent-{payment.id}",
        )

        try:
            self.db.query(PaymentModel).filter(
                PaymentModel.id == payment.id,
                PaymentModel.payment_intent_id.is_(None),
            ).update({"payment_intent_id": result.intent_id}, synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(payment)
        if payment.payment_intent_id != result.intent_id:
            raise ConflictError("Payment already exists for this job and caregiver")

        logger.info(f"付款 {payment.id} 已建立付款意圖 {result.intent_id}（金額 {payment.amount}）")
        self.audit_service.record(actor.id, actor.table, "Created payment intent", "Payment", payment.id)
        return PaymentIntentResponse(
            payment_id=payment.id,
            client_secret=result.client_secret,
            amount=payment.amount,
            platform_fee=payment.platform_fee,
            net_amount=payment.net_amount,
            currency=self.currency,
        )

    # ---------- Webhook 對帳 ----------

    def handle_webhook(self, payload: bytes, sig_header: Optional[str]) -> WebhookAck:
        """
        處理金流服務的 webhook

        簽章驗證失敗時不變更任何狀態。已處理過的事件 ID 直接回應；
        事件 ID 與效果在同一次 commit 寫入，稽核與通知在 commit 之後執行。
        """
        event = self.processor.construct_event(payload, sig_header, self.webhook_secret)

        if self.db.query(ProcessedWebhookEventModel).filter(
            ProcessedWebhookEventModel.event_id == event.id
        ).first():
            logger.info(f"重複的 webhook 事件 {event.id}（{event.type}），略過")
            return WebhookAck(duplicate=True)

        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info(f"未處理的 webhook 事件類型：{event.type}")
            return WebhookAck()

        try:
            side_effects = handler(event)
            self.db.add(ProcessedWebhookEventModel(
                event_id=event.id,
                event_type=event.type,
                processed_at=utc_now(),
            ))
            self.db.commit()
        except IntegrityError:
            # 同一事件的並行重送已先一步寫入
            self.db.rollback()
            logger.info(f"webhook 事件 {event.id} 已由另一個請求處理")
            return WebhookAck(duplicate=True)
        except Exception:
            self.db.rollback()
            raise

        for effect in side_effects:
            effect()
        return WebhookAck()

    def _find_payment_for_intent(self, intent: dict) -> Optional[PaymentModel]:
        """
        依付款意圖 ID 找付款，找不到時改用 metadata 中的 payment_id

        沒有本平台 metadata 的事件返回 None（忽略）；有 metadata 但找不到
        資料列時拋出 NotFoundError，讓金流服務稍後重送。
        """
        intent_id = intent.get("id")
        if intent_id:
            payment = self.db.query(PaymentModel).filter(PaymentModel.payment_intent_id == intent_id).first()
            if payment:
                return payment

        payment_id = (intent.get("metadata") or {}).get("payment_id")
        if not payment_id:
            logger.info(f"付款意圖 {intent_id} 不屬於本平台，略過")
            return None

        payment = self.db.query(PaymentModel).filter(PaymentModel.id == payment_id).first()
        if not payment:
            raise NotFoundError(f"Payment {payment_id} not found yet")
        if payment.payment_intent_id and payment.payment_intent_id != intent_id:
            logger.warning(f"付款 {payment.id} 已對應付款意圖 {payment.payment_intent_id}，略過 {intent_id}")
            return None
        return payment

    def _on_intent_succeeded(self, event: ProcessorEvent) -> List[SideEffect]:
        payment = self._find_payment_for_intent(event.data_object)
        if payment is None:
            return []

        values = {"payment_status": PaymentStatus.COMPLETED}
        if payment.payment_intent_id is None:
            values["payment_intent_id"] = event.data_object.get("id")
        # 已有撥款 ID 的 FAILED 來自 transfer.failed，不覆蓋；
        # 沒有撥款 ID 的 FAILED 來自先前的付款失敗事件，付款成功後恢復
        if payment.transfer_status == TransferStatus.PENDING or (
            payment.transfer_status == TransferStatus.FAILED and payment.transfer_id is None
        ):
            values["transfer_status"] = TransferStatus.PAID

        updated = self.db.query(PaymentModel).filter(
            PaymentModel.id == payment.id,
            PaymentModel.payment_status != PaymentStatus.COMPLETED,
        ).update(values, synchronize_session=False)
        if updated != 1:
            logger.info(f"付款 {payment.id} 已是 COMPLETED，不重複通知")
            return []

        logger.info(f"付款 {payment.id} 完成")
        payment_id, family_id, caregiver_id = payment.id, payment.family_id, payment.caregiver_id
        job_post_id, amount = payment.job_post_id, payment.amount

        def effect():
            self.audit_service.record(family_id, FamilyActor.table, "Payment completed", "Payment", payment_id)
            self.notification_service.send(
                recipient_id=caregiver_id,
                recipient_kind=RecipientKind.CAREGIVER,
                notification_type=NotificationType.PAYMENT_RECEIVED,
                message=f"Payment of ${amount:.2f} received",
                job_post_id=job_post_id,
                payment_id=payment_id,
            )
            self.notification_service.send(
                recipient_id=family_id,
                recipient_kind=RecipientKind.FAMILY,
                notification_type=NotificationType.PAYMENT_RECEIVED,
                message=f"Payment of ${amount:.2f} successfully processed",
                job_post_id=job_post_id,
                payment_id=payment_id,
            )

        return [effect]

    def _on_intent_failed(self, event: ProcessorEvent) -> List[SideEffect]:
        payment = self._find_payment_for_intent(event.data_object)
        if payment is None:
            return []

        values = {"payment_status": PaymentStatus.REJECTED, "transfer_status": TransferStatus.FAILED}
        if payment.payment_intent_id is None:
            values["payment_intent_id"] = event.data_object.get("id")

        # 只有 PENDING 的付款會變為 REJECTED，已完成的付款不回退
        updated = self.db.query(PaymentModel).filter(
            PaymentModel.id == payment.id,
            PaymentModel.payment_status == PaymentStatus.PENDING,
        ).update(values, synchronize_session=False)
        if updated != 1:
            logger.info(f"付款 {payment.id} 已不是 PENDING，忽略失敗事件")
            return []

        logger.info(f"付款 {payment.id} 失敗")
        payment_id, family_id, job_post_id = payment.id, payment.family_id, payment.job_post_id

        def effect():
            self.audit_service.record(family_id, FamilyActor.table, "Payment failed", "Payment", payment_id)
            self.notification_service.send(
                recipient_id=family_id,
                recipient_kind=RecipientKind.FAMILY,
                notification_type=NotificationType.PAYMENT_FAILED,
                message="Your payment could not be processed; please try another payment method",
                job_post_id=job_post_id,
                payment_id=payment_id,
            )

        return [effect]

    def _on_transfer_created(self, event: ProcessorEvent) -> List[SideEffect]:
        """將撥款 ID 寫入該目的帳戶最近一筆尚未有撥款 ID 的付款"""
        transfer_id = event.data_object.get("id")
        destination = event.data_object.get("destination")
        if not transfer_id or not destination:
            return []
        if self.db.query(PaymentModel).filter(PaymentModel.transfer_id == transfer_id).first():
            return []

        payment = self._find_payment_awaiting_transfer(destination)
        if not payment:
            logger.info(f"撥款 {transfer_id} 找不到對應的付款（{destination}）")
            return []

        self.db.query(PaymentModel).filter(
            PaymentModel.id == payment.id,
            PaymentModel.transfer_id.is_(None),
        ).update({"transfer_id": transfer_id}, synchronize_session=False)
        logger.info(f"付款 {payment.id} 對應撥款 {transfer_id}")
        return []

    def _on_transfer_failed(self, event: ProcessorEvent) -> List[SideEffect]:
        """
        撥款失敗：只更新撥款狀態，付款狀態維持不變

        transfer.failed 可能比 transfer.created 先到；此時依目的帳戶找付款，
        並一併寫入撥款 ID，之後到達的 transfer.created 會被略過。
        """
        transfer_id = event.data_object.get("id")
        if not transfer_id:
            return []
        if self.db.query(PaymentModel).filter(PaymentModel.transfer_id == transfer_id).first():
            updated = self.db.query(PaymentModel).filter(
                PaymentModel.transfer_id == transfer_id,
                PaymentModel.transfer_status != TransferStatus.FAILED,
            ).update({"transfer_status": TransferStatus.FAILED}, synchronize_session=False)
            if updated:
                logger.info(f"撥款 {transfer_id} 失敗")
            return []

        destination = event.data_object.get("destination")
        payment = self._find_payment_awaiting_transfer(destination) if destination else None
        if not payment:
            logger.info(f"撥款 {transfer_id} 失敗，但找不到對應的付款（{destination}）")
            return []

        self.db.query(PaymentModel).filter(
            PaymentModel.id == payment.id,
            PaymentModel.transfer_id.is_(None),
        ).update(
            {"transfer_id": transfer_id, "transfer_status": TransferStatus.FAILED},
            synchronize_session=False,
        )
        logger.info(f"撥款 {transfer_id} 失敗（先於建立事件到達），已對應付款 {payment.id}")
        return []

    def _find_payment_awaiting_transfer(self, destination: str) -> Optional[PaymentModel]:
        """目的帳戶最近一筆尚未有撥款 ID 的付款"""
        return self.db.query(PaymentModel).filter(
            PaymentModel.destination_account_id == destination,
            PaymentModel.transfer_id.is_(None),
            PaymentModel.transfer_status.in_([TransferStatus.PENDING, TransferStatus.PAID]),
        ).order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc()).first()

    # ---------- 查詢 ----------

    def _list(self, query, page: int, limit: int, status: Optional[str]) -> Page[Payment]:
        if status:
            try:
                query = query.filter(PaymentModel.payment_status == PaymentStatus(status))
            except ValueError:
                raise ValidationError(f"Unknown payment status: {status}", field="status")
        rows, total, total_pages = paginate(query.order_by(PaymentModel.created_at.desc()), page, limit)
        return Page[Payment](
            items=[payment_to_schema(row) for row in rows],
            total=total,
            total_pages=total_pages,
            current_page=page,
        )

    def list_family_payments(
        self, actor: Actor, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> Page[Payment]:
        """家屬付款紀錄"""
        if not isinstance(actor, FamilyActor):
            raise ForbiddenError("Only families can access payment history")
        query = self.db.query(PaymentModel).filter(PaymentModel.family_id == actor.id)
        return self._list(query, page, limit, status)

    def list_caregiver_payments(
        self, actor: Actor, page: int = 1, limit: int = 10, status: Optional[str] = None
    ) -> Page[Payment]:
        """照護員收款紀錄"""
        if not isinstance(actor, CaregiverActor):
            raise ForbiddenError("Only caregivers can access payment history")
        query = self.db.query(PaymentModel).filter(PaymentModel.caregiver_id == actor.id)
        return self._list(query, page, limit, status)

    def get_payment(self, actor: Actor, payment_id: str) -> Payment:
        """付款明細（當事人或管理員）"""
        payment = self.db.query(PaymentModel).filter(PaymentModel.id == payment_id).first()
        visible = payment is not None and (
            isinstance(actor, AdminActor)
            or (isinstance(actor, FamilyActor) and payment.family_id == actor.id)
            or (isinstance(actor, CaregiverActor) and payment.caregiver_id == actor.id)
        )
        if not visible:
            raise NotFoundError("Payment not found")
        return payment_to_schema(payment)
