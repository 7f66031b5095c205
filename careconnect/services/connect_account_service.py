"""
照護員收款帳戶服務（Stripe Connect）
"""
from typing import Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.orm import Session

from careconnect.config import FRONTEND_URL, STRIPE_CONNECT_WEBHOOK_SECRET
from careconnect.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from careconnect.core.identity import Actor, AdminActor, CaregiverActor
from careconnect.core.logger import setup_logger
from careconnect.core.pagination import paginate
from careconnect.core.time_utils import utc_now
from careconnect.models.schemas import ConnectAccount, LinkResponse, Page, WebhookAck
from careconnect.models.state import ConnectAccountStatus
from careconnect.models.user import CaregiverModel
from careconnect.services.audit_service import AuditService
from careconnect.services.payment_processor import AccountSnapshot, PaymentProcessor

# 設置 logger
logger = setup_logger(__name__)


def derive_account_status(snapshot: AccountSnapshot) -> ConnectAccountStatus:
    """
    由金流服務回報的帳戶旗標計算帳戶狀態（輪詢與 webhook 共用）

    三個旗標都為 True 時為 ACTIVE；有停用原因時為 RESTRICTED；其餘為 PENDING。
    """
    if snapshot.details_submitted and snapshot.charges_enabled and snapshot.payouts_enabled:
        return ConnectAccountStatus.ACTIVE
    if snapshot.disabled_reason:
        return ConnectAccountStatus.RESTRICTED
    return ConnectAccountStatus.PENDING


def connect_account_to_schema(caregiver: CaregiverModel) -> ConnectAccount:
    return ConnectAccount(
        caregiver_id=caregiver.id,
        caregiver_name=caregiver.name,
        account_id=caregiver.stripe_account_id,
        account_status=caregiver.account_status,
        onboarding_complete=bool(caregiver.onboarding_complete),
        details_submitted=bool(caregiver.details_submitted),
        charges_enabled=bool(caregiver.charges_enabled),
        payouts_enabled=bool(caregiver.payouts_enabled),
        capabilities=caregiver.capabilities,
        restriction_reason=caregiver.restriction_reason,
        updated_at=caregiver.account_updated_at,
    )


class ConnectAccountService:
    """照護員收款帳戶服務"""

    def __init__(
        self,
        db: Session,
        processor: PaymentProcessor,
        audit_service: Optional[AuditService] = None,
        webhook_secret: str = STRIPE_CONNECT_WEBHOOK_SECRET,
        frontend_url: str = FRONTEND_URL,
    ):
        """
        初始化收款帳戶服務

        參數:
            db: 資料庫會話
            processor: 金流服務（由應用程式工廠注入）
            audit_service: 稽核服務（可選）
            webhook_secret: Connect webhook 簽章密鑰
            frontend_url: 開戶流程完成後返回的前端網址
        """
        self.db = db
        self.processor = processor
        self.audit_service = audit_service or AuditService(db)
        self.webhook_secret = webhook_secret
        self.frontend_url = frontend_url.rstrip("/")

    def _get_own_caregiver(self, actor: Actor) -> CaregiverModel:
        if not isinstance(actor, CaregiverActor):
            raise ForbiddenError("Only caregivers can manage payout accounts")
        caregiver = self.db.query(CaregiverModel).filter(CaregiverModel.id == actor.id).first()
        if not caregiver:
            raise NotFoundError("Caregiver not found")
        return caregiver

    def _get_by_account_id(self, account_id: str) -> CaregiverModel:
        caregiver = self.db.query(CaregiverModel).filter(CaregiverModel.stripe_account_id == account_id).first()
        if not caregiver:
            raise NotFoundError("Connect account not found")
        return caregiver

    def _apply_snapshot(
        self, caregiver: CaregiverModel, snapshot: AccountSnapshot
    ) -> Tuple[ConnectAccountStatus, ConnectAccountStatus]:
        """寫入金流服務回報的帳戶狀態，返回 (原狀態, 新狀態)"""
        old_status = caregiver.account_status
        new_status = derive_account_status(snapshot)
        try:
            caregiver.account_status = new_status
            caregiver.details_submitted = snapshot.details_submitted
            caregiver.charges_enabled = snapshot.charges_enabled
            caregiver.payouts_enabled = snapshot.payouts_enabled
            caregiver.onboarding_complete = snapshot.details_submitted
            caregiver.capabilities = snapshot.capabilities
            if new_status == ConnectAccountStatus.RESTRICTED:
                caregiver.restriction_reason = snapshot.disabled_reason
            elif new_status == ConnectAccountStatus.ACTIVE:
                caregiver.restriction_reason = None
            caregiver.account_updated_at = utc_now()
            self.db.commit()
            self.db.refresh(caregiver)
        except Exception:
            self.db.rollback()
            raise

        if old_status != new_status:
            logger.info(f"照護員 {caregiver.id} 收款帳戶：{old_status.value} -> {new_status.value}")
        return old_status, new_status

    # ---------- 照護員 ----------

    def create_account(self, actor: Actor) -> ConnectAccount:
        """
        建立收款帳戶（NOT_CREATED -> PENDING）

        返回:
            ConnectAccount: 帳戶狀態
        """
        caregiver = self._get_own_caregiver(actor)
        if caregiver.stripe_account_id:
            raise ConflictError("Payout account already exists")

        account_id = self.processor.create_account(caregiver.email, {"caregiver_id": caregiver.id})

        try:
            updated = self.db.query(CaregiverModel).filter(
                CaregiverModel.id == caregiver.id,
                CaregiverModel.stripe_account_id.is_(None),
            ).update({
                "stripe_account_id": account_id,
                "account_status": ConnectAccountStatus.PENDING,
                "account_updated_at": utc_now(),
            }, synchronize_session=False)
            if updated != 1:
                self.db.rollback()
                raise ConflictError("Payout account already exists")
            self.db.commit()
        except ConflictError:
            raise
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(caregiver)

        logger.info(f"照護員 {caregiver.id} 建立收款帳戶 {account_id}")
        self.audit_service.record(actor.id, actor.table, "Created connect account", "Care", caregiver.id)
        return connect_account_to_schema(caregiver)

    def create_onboarding_link(self, actor: Actor) -> LinkResponse:
        """取得開戶流程連結"""
        caregiver = self._get_own_caregiver(actor)
        if not caregiver.stripe_account_id:
            raise ValidationError("Create a payout account first")
        url = self.processor.create_account_link(
            caregiver.stripe_account_id,
            refresh_url=f"{self.frontend_url}/caregiver/connect/refresh",
            return_url=f"{self.frontend_url}/caregiver/connect/return",
        )
        return LinkResponse(url=url)

    def create_dashboard_link(self, actor: Actor) -> LinkResponse:
        """取得收款帳戶後台登入連結（帳戶必須已可收款）"""
        caregiver = self._get_own_caregiver(actor)
        if not caregiver.stripe_account_id or not caregiver.charges_enabled:
            raise ValidationError("Payout account is not ready for the dashboard yet")
        return LinkResponse(url=self.processor.create_login_link(caregiver.stripe_account_id))

    def get_account_status(self, actor: Actor) -> ConnectAccount:
        """查詢並同步收款帳戶狀態（尚未建立時回傳 NOT_CREATED）"""
        caregiver = self._get_own_caregiver(actor)
        if not caregiver.stripe_account_id:
            return connect_account_to_schema(caregiver)
        snapshot = self.processor.retrieve_account(caregiver.stripe_account_id)
        self._apply_snapshot(caregiver, snapshot)
        return connect_account_to_schema(caregiver)

    def handle_webhook(self, payload: bytes, sig_header: Optional[str]) -> WebhookAck:
        """
        處理 Connect webhook（account.updated）

        同一份帳戶資料重複套用結果相同；只有狀態改變時才寫入稽核紀錄。
        """
        event = self.processor.construct_event(payload, sig_header, self.webhook_secret)
        if event.type != "account.updated":
            logger.info(f"未處理的 Connect webhook 事件類型：{event.type}")
            return WebhookAck()

        snapshot = AccountSnapshot.from_object(event.data_object)
        caregiver = self.db.query(CaregiverModel).filter(
            CaregiverModel.stripe_account_id == snapshot.account_id
        ).first()
        if not caregiver:
            logger.info(f"收款帳戶 {snapshot.account_id} 不屬於任何照護員，略過")
            return WebhookAck()

        old_status, new_status = self._apply_snapshot(caregiver, snapshot)
        if old_status != new_status:
            self.audit_service.record(
                caregiver.id, CaregiverActor.table,
                f"Connect account status changed to {new_status.value}", "Care", caregiver.id,
            )
        return WebhookAck()

    # ---------- 管理員 ----------

    @staticmethod
    def _require_admin(actor: Actor) -> None:
        if not isinstance(actor, AdminActor):
            raise ForbiddenError("Only admin can manage connect accounts")

    def list_accounts(
        self,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Page[ConnectAccount]:
        """管理員查詢收款帳戶（可依狀態篩選、依姓名或 email 搜尋）"""
        self._require_admin(actor)
        query = self.db.query(CaregiverModel).filter(CaregiverModel.stripe_account_id.isnot(None))
        if status:
            try:
                query = query.filter(CaregiverModel.account_status == ConnectAccountStatus(status))
            except ValueError:
                raise ValidationError(f"Unknown account status: {status}", field="status")
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(CaregiverModel.name.ilike(pattern), CaregiverModel.email.ilike(pattern)))

        rows, total, total_pages = paginate(query.order_by(CaregiverModel.account_updated_at.desc()), page, limit)
        return Page[ConnectAccount](
            items=[connect_account_to_schema(row) for row in rows],
            total=total,
            total_pages=total_pages,
            current_page=page,
        )

    def refresh_account(self, actor: Actor, account_id: str) -> ConnectAccount:
        """管理員從金流服務重新同步帳戶狀態"""
        self._require_admin(actor)
        caregiver = self._get_by_account_id(account_id)
        self._apply_snapshot(caregiver, self.processor.retrieve_account(account_id))
        self.audit_service.record(actor.id, actor.table, "Refreshed connect account", "Care", caregiver.id)
        return connect_account_to_schema(caregiver)

    def _override(self, actor: Actor, account_id: str, status: ConnectAccountStatus,
                  reason: Optional[str], action: str) -> ConnectAccount:
        self._require_admin(actor)
        caregiver = self._get_by_account_id(account_id)
        try:
            caregiver.account_status = status
            caregiver.restriction_reason = reason
            if status == ConnectAccountStatus.ACTIVE:
                caregiver.onboarding_complete = True
            caregiver.account_updated_at = utc_now()
            self.db.commit()
            self.db.refresh(caregiver)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"管理員 {actor.id} 將收款帳戶 {account_id} 設為 {status.value}")
        self.audit_service.record(actor.id, actor.table, action, "Care", caregiver.id)
        return connect_account_to_schema(caregiver)

    def approve_account(self, actor: Actor, account_id: str) -> ConnectAccount:
        """管理員核准帳戶（強制 ACTIVE）"""
        return self._override(actor, account_id, ConnectAccountStatus.ACTIVE, None, "Approved connect account")

    def restrict_account(self, actor: Actor, account_id: str, reason: str) -> ConnectAccount:
        """管理員限制帳戶（強制 RESTRICTED，需附原因）"""
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Restriction reason is required", field="reason")
        return self._override(
            actor, account_id, ConnectAccountStatus.RESTRICTED, reason, f"Restricted connect account: {reason}"
        )
