"""
安全認證相關功能（身分令牌的簽發與驗證）
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt

from careconnect.config import JWT_SECRET_KEY, JWT_ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from careconnect.core.errors import UnauthenticatedError
from careconnect.core.identity import Actor, actor_from_claims


def create_access_token(subject_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    建立 JWT access token

    正式環境由外部登入服務簽發；此函數供開發與測試使用。
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": subject_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """解碼 JWT token，失敗時返回 None"""
    try:
        return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None


def authenticate_token(token: Optional[str]) -> Actor:
    """
    驗證令牌並取得呼叫者身分

    參數:
        token: Bearer token

    返回:
        Actor: 呼叫者身分

    例外:
        UnauthenticatedError: 沒有令牌、令牌無效或過期
    """
    if not token:
        raise UnauthenticatedError("Access token not found")
    payload = decode_access_token(token)
    if payload is None:
        raise UnauthenticatedError("Invalid or expired token")
    return actor_from_claims(payload.get("sub"), payload.get("role"))
