"""
金流服務介面與 Stripe 實作

協調器只依賴 PaymentProcessor，由應用程式工廠建立後注入，
測試時以假實作替換。
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import stripe

from careconnect.config import STRIPE_SECRET_KEY, STRIPE_TIMEOUT_SECONDS
from careconnect.core.errors import UpstreamFailureError, WebhookSignatureError
from careconnect.core.logger import setup_logger

# 設置 logger
logger = setup_logger(__name__)


@dataclass
class IntentResult:
    """建立付款意圖的結果"""
    intent_id: str
    client_secret: str


@dataclass
class ProcessorEvent:
    """已驗證簽章的 webhook 事件"""
    id: str
    type: str
    data_object: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, event: Dict[str, Any]) -> "ProcessorEvent":
        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise WebhookSignatureError("Malformed webhook event")
        data = event.get("data") or {}
        return cls(id=event["id"], type=event["type"], data_object=data.get("object") or {})


def _as_dict(value: Any) -> Dict[str, Any]:
    """將 Stripe 物件或一般 dict 轉為 dict"""
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return {}


@dataclass
class AccountSnapshot:
    """收款帳戶在金流服務端的狀態"""
    account_id: str
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False
    disabled_reason: Optional[str] = None
    capabilities: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_object(cls, account: Any) -> "AccountSnapshot":
        """由 Stripe Account 物件或 webhook 中的 account dict 建立"""
        data = _as_dict(account)
        requirements = _as_dict(data.get("requirements"))
        return cls(
            account_id=data.get("id"),
            details_submitted=bool(data.get("details_submitted")),
            charges_enabled=bool(data.get("charges_enabled")),
            payouts_enabled=bool(data.get("payouts_enabled")),
            disabled_reason=requirements.get("disabled_reason"),
            capabilities=_as_dict(data.get("capabilities")),
        )


class PaymentProcessor:
    """金流服務介面"""

    def create_payment_intent(
        self,
        amount_cents: int,
        currency: str,
        destination_account: str,
        fee_cents: int,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> IntentResult:
        """建立付款意圖（全額收款，扣除平台費後轉給目的帳戶）"""
        raise NotImplementedError

    def construct_event(self, payload: bytes, sig_header: Optional[str], secret: str) -> ProcessorEvent:
        """驗證 webhook 簽章並解析事件，失敗時拋出 WebhookSignatureError"""
        raise NotImplementedError

    def create_account(self, email: Optional[str], metadata: Dict[str, str]) -> str:
        """建立收款帳戶，返回帳戶 ID"""
        raise NotImplementedError

    def retrieve_account(self, account_id: str) -> AccountSnapshot:
        """取得收款帳戶狀態"""
        raise NotImplementedError

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        """建立開戶流程連結"""
        raise NotImplementedError

    def create_login_link(self, account_id: str) -> str:
        """建立收款帳戶後台登入連結"""
        raise NotImplementedError


class StripePaymentProcessor(PaymentProcessor):
    """Stripe Connect 實作"""

    def __init__(self, api_key: str = STRIPE_SECRET_KEY, timeout: float = STRIPE_TIMEOUT_SECONDS):
        """
        初始化 Stripe 客戶端

        參數:
            api_key: Stripe 金鑰（空字串時所有 API 呼叫都會失敗）
            timeout: 每次 HTTP 呼叫的逾時秒數
        """
        self.api_key = api_key
        self.client = None
        if api_key:
            self.client = stripe.StripeClient(api_key, http_client=stripe.RequestsClient(timeout=timeout))

    def _require_client(self) -> "stripe.StripeClient":
        if self.client is None:
            raise UpstreamFailureError("Payment processor is not configured", retryable=False)
        return self.client

    def _call(self, description: str, func):
        """呼叫 Stripe API，將錯誤統一轉換為 UpstreamFailureError"""
        client = self._require_client()
        try:
            return func(client)
        except stripe.APIConnectionError as e:
            # 逾時或連線失敗：結果未知，呼叫端不可假設成功
            logger.error(f"Stripe {description} 連線失敗：{e}")
            raise UpstreamFailureError("Payment processor is unreachable; please retry")
        except stripe.StripeError as e:
            logger.error(f"Stripe {description} 失敗：{e}")
            raise UpstreamFailureError(f"Payment processor error: {e.user_message or 'request failed'}")

    def create_payment_intent(self, amount_cents, currency, destination_account, fee_cents, metadata, idempotency_key):
        intent = self._call(
            "建立付款意圖",
            lambda client: client.payment_intents.create(
                params={
                    "amount": amount_cents,
                    "currency": currency,
                    "automatic_payment_methods": {"enabled": True},
                    "application_fee_amount": fee_cents,
                    "transfer_data": {"destination": destination_account},
                    "metadata": metadata,
                },
                options={"idempotency_key": idempotency_key},
            ),
        )
        return IntentResult(intent_id=intent.id, client_secret=intent.client_secret)

    def construct_event(self, payload, sig_header, secret):
        if not secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not sig_header:
            raise WebhookSignatureError("Missing signature header")
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            stripe.WebhookSignature.verify_header(text, sig_header, secret)
            event = json.loads(text)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook 簽章驗證失敗：{e}")
            raise WebhookSignatureError("Invalid webhook signature")
        except ValueError:
            raise WebhookSignatureError("Invalid webhook payload")
        return ProcessorEvent.from_dict(event)

    def create_account(self, email, metadata):
        params = {
            "type": "express",
            "capabilities": {
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            "business_type": "individual",
            "metadata": metadata,
        }
        if email:
            params["email"] = email
        account = self._call("建立收款帳戶", lambda client: client.accounts.create(params=params))
        return account.id

    def retrieve_account(self, account_id):
        account = self._call("查詢收款帳戶", lambda client: client.accounts.retrieve(account_id))
        return AccountSnapshot.from_object(account)

    def create_account_link(self, account_id, refresh_url, return_url):
        link = self._call(
            "建立開戶連結",
            lambda client: client.account_links.create(params={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            }),
        )
        return link.url

    def create_login_link(self, account_id):
        link = self._call("建立後台登入連結", lambda client: client.accounts.login_links.create(account_id))
        return link.url
