"""
狀態轉換表（純函數，不做任何 I/O）

預約服務狀態、預約付款狀態各有一張轉換表；
職缺狀態沒有轉換限制，只檢查值是否合法。
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

from careconnect.core.errors import ConflictError, ValidationError
from careconnect.core.identity import Role
from careconnect.models.state import BookingStatus, BookingPaymentStatus, JobPostStatus

TERMINAL_BOOKING_STATUSES = frozenset({
    BookingStatus.COMPLETED,
    BookingStatus.CANCELED,
    BookingStatus.REJECTED,
    BookingStatus.EXPIRED,
})


class BookingAction(str, Enum):
    """預約操作"""
    ACCEPT = "accept"
    REJECT = "reject"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    EXPIRE = "expire"


@dataclass(frozen=True)
class Transition:
    """一條轉換規則：允許的來源狀態、目標狀態、可執行的角色"""
    sources: FrozenSet[BookingStatus]
    target: BookingStatus
    roles: FrozenSet[Role]


# 建立預約（→ PENDING）只限家屬，由 BookingService.create_booking 處理
BOOKING_TRANSITIONS: Dict[BookingAction, Transition] = {
    BookingAction.ACCEPT: Transition(
        sources=frozenset({BookingStatus.PENDING}),
        target=BookingStatus.ACCEPTED,
        roles=frozenset({Role.CARE}),
    ),
    BookingAction.REJECT: Transition(
        sources=frozenset({BookingStatus.PENDING}),
        target=BookingStatus.REJECTED,
        roles=frozenset({Role.CARE}),
    ),
    BookingAction.START: Transition(
        sources=frozenset({BookingStatus.ACCEPTED}),
        target=BookingStatus.IN_PROGRESS,
        roles=frozenset({Role.FAMILY, Role.CARE}),
    ),
    BookingAction.COMPLETE: Transition(
        sources=frozenset({BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS}),
        target=BookingStatus.COMPLETED,
        roles=frozenset({Role.FAMILY, Role.CARE}),
    ),
    BookingAction.CANCEL: Transition(
        sources=frozenset({BookingStatus.PENDING, BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS}),
        target=BookingStatus.CANCELED,
        roles=frozenset({Role.FAMILY}),
    ),
    # 保留給逾時清理排程，沒有任何角色可以直接觸發
    BookingAction.EXPIRE: Transition(
        sources=frozenset({BookingStatus.PENDING}),
        target=BookingStatus.EXPIRED,
        roles=frozenset(),
    ),
}

BOOKING_PAYMENT_TRANSITIONS: Dict[BookingPaymentStatus, FrozenSet[BookingPaymentStatus]] = {
    BookingPaymentStatus.UNPAID: frozenset({BookingPaymentStatus.HOLD}),
    BookingPaymentStatus.HOLD: frozenset({BookingPaymentStatus.PAID, BookingPaymentStatus.REFUNDED}),
    BookingPaymentStatus.PAID: frozenset({BookingPaymentStatus.REFUNDED}),
    BookingPaymentStatus.REFUNDED: frozenset(),
}


def _describe(statuses) -> str:
    """將狀態集合轉為穩定排序的文字"""
    return ", ".join(sorted(status.value for status in statuses))


def is_terminal(status: BookingStatus) -> bool:
    """是否為終止狀態"""
    return status in TERMINAL_BOOKING_STATUSES


def role_may_perform(action: BookingAction, role: Role) -> bool:
    """該角色是否可以執行此操作"""
    return role in BOOKING_TRANSITIONS[action].roles


def next_booking_status(action: BookingAction, current: BookingStatus) -> BookingStatus:
    """
    計算預約執行操作後的狀態

    參數:
        action: 預約操作
        current: 目前狀態

    返回:
        BookingStatus: 目標狀態

    例外:
        ConflictError: 目前狀態不在允許的來源狀態中
    """
    transition = BOOKING_TRANSITIONS[action]
    if current not in transition.sources:
        raise ConflictError(
            f"Cannot {action.value} a booking in status {current.value}; "
            f"only {_describe(transition.sources)} bookings allow it"
        )
    return transition.target


def next_booking_payment_status(
    current: BookingPaymentStatus, target: BookingPaymentStatus
) -> BookingPaymentStatus:
    """檢查預約付款狀態轉換是否合法，合法時返回目標狀態"""
    allowed = BOOKING_PAYMENT_TRANSITIONS[current]
    if target not in allowed:
        valid_sources = [
            source for source, targets in BOOKING_PAYMENT_TRANSITIONS.items() if target in targets
        ]
        raise ConflictError(
            f"Cannot move payment status from {current.value} to {target.value}; "
            f"only {_describe(valid_sources) or 'no'} statuses allow it"
        )
    return target


def parse_job_post_status(value: str) -> JobPostStatus:
    """驗證職缺狀態值（職缺沒有轉換限制）"""
    try:
        return JobPostStatus(value)
    except ValueError:
        raise ValidationError("Status must be ACTIVE or EXPIRE", field="status")
