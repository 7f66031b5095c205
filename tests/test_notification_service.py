import logging

import pytest

from careconnect.models.audit import NotificationModel
from careconnect.models.state import RecipientKind
from careconnect.services import notification_service
from careconnect.services.notification_service import NotificationService, NotificationType


@pytest.fixture
def records(caplog):
    service_logger = logging.getLogger(notification_service.__name__)
    service_logger.addHandler(caplog.handler)
    yield caplog
    service_logger.removeHandler(caplog.handler)


def test_send_stores_and_logs_plain_recipient_kind(db, records):
    sent = NotificationService(db).send(
        recipient_id="CARE-1",
        recipient_kind=RecipientKind.CAREGIVER,
        notification_type=NotificationType.PAYMENT_RECEIVED,
        message="Payment of $100.00 received",
    )

    assert sent is True
    assert db.query(NotificationModel).one().recipient_kind == "caregiver"
    assert "已通知 caregiver CARE-1" in records.text
    assert "RecipientKind." not in records.text


def test_send_with_unknown_recipient_kind_is_reported_not_raised(db, records):
    sent = NotificationService(db).send(
        recipient_id="X-1",
        recipient_kind="robot",
        notification_type=NotificationType.PAYMENT_RECEIVED,
        message="hello",
    )

    assert sent is False
    assert db.query(NotificationModel).count() == 0
    assert "通知發送失敗：robot X-1" in records.text
