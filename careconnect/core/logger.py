"""
日誌配置

應用程式、Gunicorn、Uvicorn 與第三方套件（Stripe、SQLAlchemy）
共用同一種格式，全部輸出到 stderr。
"""
import logging
import os
import sys
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# 第三方套件的 logger 只輸出警告以上，避免 Stripe 請求內容與 SQL 洗版
QUIET_LOGGERS = ("stripe", "sqlalchemy.engine")


def _level_name(level: Optional[str] = None) -> str:
    """取得有效的級別名稱（未指定時讀取 LOG_LEVEL，預設 INFO）"""
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    return name if name in LEVEL_NAMES else "INFO"


def _stderr_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    return handler


def _attach(logger: logging.Logger, level: int) -> logging.Logger:
    """讓 logger 只使用一個統一格式的 handler，不向上傳播"""
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()
    logger.addHandler(_stderr_handler(level))
    return logger


def setup_logger(name: str = "careconnect", level: Optional[str] = None) -> logging.Logger:
    """
    取得模組的 logger

    參數:
        name: logger 名稱（通常是 __name__）
        level: 日誌級別（未指定時讀取環境變數 LOG_LEVEL）

    返回:
        logging.Logger: 已設定的 logger
    """
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(_stderr_handler(logging.WARNING))
        root.setLevel(logging.WARNING)

    for quiet_name in QUIET_LOGGERS:
        quiet = logging.getLogger(quiet_name)
        if quiet.level == logging.NOTSET:
            quiet.setLevel(logging.WARNING)

    return _attach(logging.getLogger(name), getattr(logging, _level_name(level)))


def setup_gunicorn_logger() -> None:
    """讓 Gunicorn 的 error/access logger 使用統一格式（在 on_starting hook 呼叫）"""
    level = getattr(logging, _level_name())
    for name in ("gunicorn.error", "gunicorn.access"):
        _attach(logging.getLogger(name), level)


def get_uvicorn_log_config() -> Dict[str, Any]:
    """Uvicorn 的 log_config（統一格式，並一併設定第三方套件的級別）"""
    level = _level_name()
    loggers = {
        name: {"handlers": ["default"], "level": level, "propagate": False}
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"handlers": ["default"], "level": "WARNING", "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT}},
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": loggers,
    }
