import pytest

from careconnect.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError, WebhookSignatureError
from careconnect.core.identity import AdminActor, CaregiverActor, FamilyActor
from careconnect.models.audit import AuditLogModel
from careconnect.models.state import ConnectAccountStatus
from careconnect.services.connect_account_service import ConnectAccountService, derive_account_status
from careconnect.services.payment_processor import AccountSnapshot

CONNECT_WEBHOOK_SECRET = "whsec_test_connect"
CAREGIVER = CaregiverActor(id="CARE-1")
ADMIN = AdminActor(id="ADM-1")


@pytest.fixture
def service(db, processor, make_caregiver):
    make_caregiver("CARE-1", name="Amy Wang")
    return ConnectAccountService(db, processor, frontend_url="https://app.example.com/")


def account_event(account_id, **flags):
    data = {"id": account_id, "object": "account"}
    data.update(flags)
    return data


@pytest.mark.parametrize("snapshot, expected", [
    (AccountSnapshot("acct", True, True, True), ConnectAccountStatus.ACTIVE),
    (AccountSnapshot("acct", True, True, False), ConnectAccountStatus.PENDING),
    (AccountSnapshot("acct", False, False, False), ConnectAccountStatus.PENDING),
    (AccountSnapshot("acct", True, False, False, disabled_reason="requirements.past_due"), ConnectAccountStatus.RESTRICTED),
    (AccountSnapshot("acct", True, True, True, disabled_reason="under_review"), ConnectAccountStatus.ACTIVE),
])
def test_derive_account_status(snapshot, expected):
    assert derive_account_status(snapshot) == expected


def test_status_before_creation_is_not_created(service):
    account = service.get_account_status(CAREGIVER)
    assert account.account_status == ConnectAccountStatus.NOT_CREATED
    assert account.account_id is None


def test_create_account_once(db, service):
    account = service.create_account(CAREGIVER)

    assert account.account_id == "acct_test_1"
    assert account.account_status == ConnectAccountStatus.PENDING
    assert db.query(AuditLogModel).filter(AuditLogModel.action == "Created connect account").count() == 1
    with pytest.raises(ConflictError):
        service.create_account(CAREGIVER)


def test_only_caregivers_manage_their_account(service):
    with pytest.raises(ForbiddenError):
        service.create_account(FamilyActor(id="FAM-1"))
    with pytest.raises(NotFoundError):
        service.create_account(CaregiverActor(id="CARE-404"))


def test_polling_reaches_active(service, processor):
    service.create_account(CAREGIVER)
    processor.accounts["acct_test_1"] = AccountSnapshot(
        "acct_test_1", True, True, True, capabilities={"transfers": "active"}
    )

    account = service.get_account_status(CAREGIVER)

    assert account.account_status == ConnectAccountStatus.ACTIVE
    assert account.onboarding_complete is True
    assert account.capabilities == {"transfers": "active"}


def test_onboarding_and_dashboard_links(service, processor):
    with pytest.raises(ValidationError):
        service.create_onboarding_link(CAREGIVER)

    service.create_account(CAREGIVER)
    link = service.create_onboarding_link(CAREGIVER)
    assert link.url == "https://connect.stripe.test/setup/acct_test_1"

    with pytest.raises(ValidationError):
        service.create_dashboard_link(CAREGIVER)
    processor.accounts["acct_test_1"] = AccountSnapshot("acct_test_1", True, True, True)
    service.get_account_status(CAREGIVER)
    assert service.create_dashboard_link(CAREGIVER).url == "https://connect.stripe.test/express/acct_test_1"


def test_onboarding_link_returns_to_frontend(db, make_caregiver, processor):
    calls = []

    def record_link(account_id, refresh_url, return_url):
        calls.append((refresh_url, return_url))
        return "https://connect.stripe.test/setup"

    processor.create_account_link = record_link
    make_caregiver("CARE-9", account_id="acct_9")
    ConnectAccountService(db, processor, frontend_url="https://app.example.com/").create_onboarding_link(
        CaregiverActor(id="CARE-9")
    )
    assert calls == [(
        "https://app.example.com/caregiver/connect/refresh",
        "https://app.example.com/caregiver/connect/return",
    )]


def test_account_updated_webhook_audits_only_status_changes(db, service, webhook_request):
    service.create_account(CAREGIVER)
    active = account_event("acct_test_1", details_submitted=True, charges_enabled=True, payouts_enabled=True)

    service.handle_webhook(*webhook_request("evt_1", "account.updated", active, secret=CONNECT_WEBHOOK_SECRET))
    service.handle_webhook(*webhook_request("evt_2", "account.updated", active, secret=CONNECT_WEBHOOK_SECRET))

    assert service.list_accounts(ADMIN).items[0].account_status == ConnectAccountStatus.ACTIVE
    changes = db.query(AuditLogModel).filter(AuditLogModel.action.like("Connect account status changed%")).all()
    assert [c.action for c in changes] == ["Connect account status changed to ACTIVE"]


def test_restricted_webhook_keeps_reason(service, webhook_request):
    service.create_account(CAREGIVER)
    restricted = account_event(
        "acct_test_1", details_submitted=True, requirements={"disabled_reason": "requirements.past_due"}
    )
    service.handle_webhook(*webhook_request("evt_1", "account.updated", restricted, secret=CONNECT_WEBHOOK_SECRET))

    [account] = service.list_accounts(ADMIN).items
    assert account.account_status == ConnectAccountStatus.RESTRICTED
    assert account.restriction_reason == "requirements.past_due"


def test_connect_webhook_ignores_unknown_accounts_and_checks_signature(service, webhook_request):
    event = account_event("acct_unknown", charges_enabled=True)
    ack = service.handle_webhook(*webhook_request("evt_1", "account.updated", event, secret=CONNECT_WEBHOOK_SECRET))
    assert ack.received is True

    with pytest.raises(WebhookSignatureError):
        # 付款 webhook 的密鑰不能用於 Connect webhook
        service.handle_webhook(*webhook_request("evt_2", "account.updated", event))


def test_admin_approve_and_restrict(db, service):
    service.create_account(CAREGIVER)

    approved = service.approve_account(ADMIN, "acct_test_1")
    assert approved.account_status == ConnectAccountStatus.ACTIVE
    assert approved.onboarding_complete is True

    with pytest.raises(ValidationError):
        service.restrict_account(ADMIN, "acct_test_1", "  ")
    restricted = service.restrict_account(ADMIN, "acct_test_1", "Suspicious activity")
    assert restricted.account_status == ConnectAccountStatus.RESTRICTED
    assert restricted.restriction_reason == "Suspicious activity"
    assert db.query(AuditLogModel).filter(
        AuditLogModel.action == "Restricted connect account: Suspicious activity",
        AuditLogModel.actor_table == "Admin",
    ).count() == 1

    with pytest.raises(ForbiddenError):
        service.approve_account(CAREGIVER, "acct_test_1")
    with pytest.raises(NotFoundError):
        service.approve_account(ADMIN, "acct_missing")


def test_admin_refresh_pulls_processor_state(service, processor):
    service.create_account(CAREGIVER)
    processor.accounts["acct_test_1"] = AccountSnapshot("acct_test_1", True, True, True)
    assert service.refresh_account(ADMIN, "acct_test_1").account_status == ConnectAccountStatus.ACTIVE


def test_admin_list_filters_and_search(service, make_caregiver):
    service.create_account(CAREGIVER)
    make_caregiver("CARE-2", name="Ben Chen", account_id="acct_2", account_active=True)
    make_caregiver("CARE-3", name="No Account")

    assert service.list_accounts(ADMIN).total == 2
    assert [a.caregiver_id for a in service.list_accounts(ADMIN, status="ACTIVE").items] == ["CARE-2"]
    assert [a.caregiver_id for a in service.list_accounts(ADMIN, search="amy").items] == ["CARE-1"]
    assert [a.caregiver_id for a in service.list_accounts(ADMIN, search="care-2@").items] == ["CARE-2"]
    with pytest.raises(ValidationError):
        service.list_accounts(ADMIN, status="OPEN")
    with pytest.raises(ForbiddenError):
        service.list_accounts(CAREGIVER)
