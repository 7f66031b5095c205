"""
FastAPI 主應用程式
"""
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from careconnect.api.routes import admin, bookings, connect, jobs, payments
from careconnect.core.errors import InternalError, ServiceError, ValidationError
from careconnect.core.logger import setup_logger
from careconnect.services.payment_processor import PaymentProcessor, StripePaymentProcessor

# 設置 logger
logger = setup_logger(__name__)


def create_app(processor: Optional[PaymentProcessor] = None) -> FastAPI:
    """
    建立 FastAPI 應用程式

    參數:
        processor: 金流服務（可選，預設依設定建立 Stripe 客戶端；測試時傳入假實作）
    """
    app = FastAPI(title="CareConnect 照護媒合系統 API", version="1.0.0")
    app.state.payment_processor = processor or StripePaymentProcessor()

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} 失敗：{exc.kind} {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        # loc 第一個元素是 body / query / path
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or None
        error = ValidationError(first.get("msg", "Invalid request"), field=field)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"未預期的錯誤：{request.method} {request.url.path}")
        error = InternalError("Internal server error")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    # 註冊路由
    app.include_router(bookings.router)
    app.include_router(jobs.router)
    app.include_router(payments.router)
    app.include_router(connect.router)
    app.include_router(admin.router)

    @app.get("/")
    def root():
        """根路徑"""
        return {
            "message": "CareConnect 照護媒合系統 API",
            "version": "1.0.0",
            "docs": "/docs"
        }

    return app


# 供 uvicorn / gunicorn 載入（careconnect.api.main:api_app）
api_app = create_app()
