"""
測試共用設定：SQLite 記憶體資料庫、假金流服務、資料建立工具
"""
import os

# 必須在匯入 careconnect 之前設定
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_payments"
os.environ["STRIPE_CONNECT_WEBHOOK_SECRET"] = "whsec_test_connect"

import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from careconnect.api.main import create_app
from careconnect.core.database import get_db, init_db
from careconnect.core.errors import UpstreamFailureError
from careconnect.core.security import create_access_token
from careconnect.models.state import BackgroundCheckStatus, ConnectAccountStatus, VerifiedStatus
from careconnect.models.user import CaregiverModel, FamilyModel
from careconnect.services.payment_processor import AccountSnapshot, IntentResult, StripePaymentProcessor

PAYMENT_WEBHOOK_SECRET = "whsec_test_payments"
CONNECT_WEBHOOK_SECRET = "whsec_test_connect"


class FakePaymentProcessor(StripePaymentProcessor):
    """不連網的金流服務；webhook 簽章仍使用真正的 Stripe 驗證"""

    def __init__(self):
        super().__init__(api_key="")
        self.intent_calls = []
        self.intents_by_key = {}
        self.accounts = {}
        self.fail_next_intent = False

    def create_payment_intent(self, amount_cents, currency, destination_account, fee_cents, metadata, idempotency_key):
        self.intent_calls.append({
            "amount_cents": amount_cents,
            "currency": currency,
            "destination_account": destination_account,
            "fee_cents": fee_cents,
            "metadata": dict(metadata),
            "idempotency_key": idempotency_key,
        })
        if self.fail_next_intent:
            self.fail_next_intent = False
            raise UpstreamFailureError("Payment processor is unreachable; please retry")
        if idempotency_key not in self.intents_by_key:
            intent_id = f"pi_test_{len(self.intents_by_key) + 1}"
            self.intents_by_key[idempotency_key] = IntentResult(intent_id, f"{intent_id}_secret_abc")
        return self.intents_by_key[idempotency_key]

    def create_account(self, email, metadata):
        account_id = f"acct_test_{len(self.accounts) + 1}"
        self.accounts[account_id] = AccountSnapshot(account_id=account_id)
        return account_id

    def retrieve_account(self, account_id):
        return self.accounts.get(account_id, AccountSnapshot(account_id=account_id))

    def create_account_link(self, account_id, refresh_url, return_url):
        return f"https://connect.stripe.test/setup/{account_id}"

    def create_login_link(self, account_id):
        return f"https://connect.stripe.test/express/{account_id}"


def sign_payload(payload: str, secret: str, timestamp: int = None) -> str:
    """產生 Stripe-Signature 標頭（t=...,v1=...）"""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def processor():
    return FakePaymentProcessor()


@pytest.fixture
def client(session_factory, processor):
    app = create_app(processor=processor)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    def _headers(subject_id: str, role: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(subject_id, role)}"}
    return _headers


@pytest.fixture
def make_family(db):
    def _make(family_id: str = "FAM-1", name: str = "Family One") -> FamilyModel:
        family = FamilyModel(id=family_id, name=name, email=f"{family_id.lower()}@example.com")
        db.add(family)
        db.commit()
        return family
    return _make


@pytest.fixture
def make_caregiver(db):
    def _make(
        caregiver_id: str = "CARE-1",
        skills=None,
        verified: bool = True,
        background: BackgroundCheckStatus = BackgroundCheckStatus.COMPLETED,
        account_id: str = None,
        account_active: bool = False,
        name: str = None,
    ) -> CaregiverModel:
        caregiver = CaregiverModel(
            id=caregiver_id,
            name=name or f"Caregiver {caregiver_id}",
            email=f"{caregiver_id.lower()}@example.com",
            skills=list(skills if skills is not None else ["medical_care"]),
            verified_status=VerifiedStatus.VERIFIED if verified else VerifiedStatus.UNVERIFIED,
            background_check_status=background,
            stripe_account_id=account_id,
            account_status=ConnectAccountStatus.ACTIVE if account_active else (
                ConnectAccountStatus.PENDING if account_id else ConnectAccountStatus.NOT_CREATED
            ),
            details_submitted=account_active,
            charges_enabled=account_active,
            payouts_enabled=account_active,
        )
        db.add(caregiver)
        db.commit()
        return caregiver
    return _make


@pytest.fixture
def webhook_request():
    """產生已簽章的 webhook 內容與標頭"""
    def _build(event_id: str, event_type: str, data_object: dict, secret: str = PAYMENT_WEBHOOK_SECRET):
        payload = json.dumps({"id": event_id, "type": event_type, "data": {"object": data_object}})
        return payload.encode("utf-8"), sign_payload(payload, secret)
    return _build
