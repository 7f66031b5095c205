"""
資料庫核心設定
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from careconnect.config import DATABASE_URL
from careconnect.core.logger import setup_logger

# 設置 logger
logger = setup_logger(__name__)

# 建立 Base 類別
Base = declarative_base()


def build_engine(url: str = DATABASE_URL):
    """建立資料庫引擎（SQLite 需允許跨執行緒使用同一連線）"""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, echo=False)


# 建立資料庫引擎
engine = build_engine()

# 建立會話工廠
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """取得資料庫會話（用於 FastAPI 依賴注入）"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    初始化資料庫，建立所有資料表

    參數:
        bind: 指定的引擎（可選，預設使用全域 engine；測試時傳入 SQLite 引擎）
    """
    # 導入所有模型，確保它們被註冊到 Base.metadata
    from careconnect.models import (  # noqa: F401
        FamilyModel,
        CaregiverModel,
        BookingModel,
        JobPostModel,
        ApplicationModel,
        PaymentModel,
        ProcessedWebhookEventModel,
        AuditLogModel,
        NotificationModel,
    )

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("資料庫表已建立")
    except Exception as e:
        logger.warning(f"資料庫初始化失敗：{e}", exc_info=True)
        raise
