"""
應用程式配置設定
"""
import os

# JWT 設定（身分由外部登入服務簽發，此處只負責驗證）
JWT_SECRET_KEY = os.getenv(
    "JWT_SECRET_KEY",
    "your-secret-key-change-this-in-production"
)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(24 * 60)))

# 資料庫設定
POSTGRES_USER = os.getenv("POSTGRES_USER", "careconnect")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "careconnect123")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")
POSTGRES_DB = os.getenv("POSTGRES_DB", "careconnect_db")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
)

# Stripe 設定（未設定金鑰時，金流相關操作會回報 UpstreamFailure）
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_CONNECT_WEBHOOK_SECRET = os.getenv("STRIPE_CONNECT_WEBHOOK_SECRET", "")
STRIPE_TIMEOUT_SECONDS = float(os.getenv("STRIPE_TIMEOUT_SECONDS", "10"))

# 金流規則
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")
PLATFORM_FEE_RATE = float(os.getenv("PLATFORM_FEE_RATE", "0.05"))

# 前端網址（Connect 開戶流程的返回頁面）
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# 伺服器設定
API_PORT = int(os.getenv("API_PORT", "8880"))

# 開發用測試資料（設為 false 可停用）
SEED_SAMPLE_DATA = os.getenv("SEED_SAMPLE_DATA", "true").lower() == "true"
