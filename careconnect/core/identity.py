"""
呼叫者身分（family / care / admin 三種角色的封閉集合）
"""
from dataclasses import dataclass
from enum import Enum
from typing import Union

from careconnect.core.errors import UnauthenticatedError


class Role(str, Enum):
    """角色枚舉（與身分令牌中的 role claim 一致）"""
    FAMILY = "family"
    CARE = "care"
    ADMIN = "admin"


@dataclass(frozen=True)
class FamilyActor:
    """家屬"""
    id: str
    role = Role.FAMILY
    table = "Family"


@dataclass(frozen=True)
class CaregiverActor:
    """照護員"""
    id: str
    role = Role.CARE
    table = "Care"


@dataclass(frozen=True)
class AdminActor:
    """管理員"""
    id: str
    role = Role.ADMIN
    table = "Admin"


Actor = Union[FamilyActor, CaregiverActor, AdminActor]

_ACTOR_TYPES = {
    Role.FAMILY: FamilyActor,
    Role.CARE: CaregiverActor,
    Role.ADMIN: AdminActor,
}


def actor_from_claims(subject_id: str, role: str) -> Actor:
    """
    由身分令牌的 claims 建立 Actor

    參數:
        subject_id: 令牌中的 sub
        role: 令牌中的 role

    返回:
        Actor: 對應角色的身分物件
    """
    if not subject_id:
        raise UnauthenticatedError("Token is missing a subject")
    try:
        actor_type = _ACTOR_TYPES[Role(role)]
    except ValueError:
        raise UnauthenticatedError(f"Unknown role: {role}")
    return actor_type(id=str(subject_id))
