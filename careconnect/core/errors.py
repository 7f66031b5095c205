"""
服務層錯誤分類

每個錯誤帶有穩定的機器可讀 kind 與對應的 HTTP 狀態碼，
由 API 層統一轉換為回應，服務層不直接依賴 FastAPI。
"""
from typing import Optional


class ServiceError(Exception):
    """服務層錯誤基底類別"""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        """轉換為 API 回應格式"""
        body = {"success": False, "kind": self.kind, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(ServiceError):
    """輸入格式錯誤或缺少欄位"""

    kind = "validation"
    status_code = 400


class UnauthenticatedError(ServiceError):
    """沒有身分或身分已過期"""

    kind = "unauthenticated"
    status_code = 401


class ForbiddenError(ServiceError):
    """已驗證身分，但角色不符或不是該資料的當事人"""

    kind = "forbidden"
    status_code = 403


class NotFoundError(ServiceError):
    """資料不存在或呼叫者無權看見"""

    kind = "not_found"
    status_code = 404


class ConflictError(ServiceError):
    """不合法的狀態轉換、重複應徵、重複付款或並行寫入衝突"""

    kind = "conflict"
    status_code = 409


class UpstreamFailureError(ServiceError):
    """外部服務（金流、通知）失敗"""

    kind = "upstream_failure"
    status_code = 502

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryable"] = self.retryable
        return body


class WebhookSignatureError(ValidationError):
    """Webhook 簽章驗證失敗，不得變更任何狀態"""


class InternalError(ServiceError):
    """非預期錯誤（對外只回傳不含細節的訊息）"""

    kind = "internal"
    status_code = 500
