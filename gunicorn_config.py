"""
Gunicorn 配置文件

啟動方式：gunicorn -c gunicorn_config.py careconnect.api.main:api_app
"""
import multiprocessing
import os

# 綁定地址和端口
bind = f"0.0.0.0:{os.getenv('API_PORT', '8880')}"

# Worker 數量（建議：CPU 核心數 * 2 + 1）
workers = int(os.getenv('GUNICORN_WORKERS', multiprocessing.cpu_count() * 2 + 1))

# FastAPI 為 ASGI 應用程式，使用 uvicorn 的 worker
worker_class = "uvicorn.workers.UvicornWorker"

# 超時設定（秒），需大於金流服務呼叫的逾時
timeout = 60

keepalive = 5

# 日誌設定
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

proc_name = "careconnect-api"

# 最大請求數（達到後重啟 worker）
max_requests = 1000
max_requests_jitter = 50

graceful_timeout = 30


def on_starting(server):
    """
    Gunicorn 啟動時的 hook：建立資料表並統一日誌格式
    """
    from careconnect.core.logger import setup_gunicorn_logger
    from careconnect.core.database import init_db
    setup_gunicorn_logger()
    init_db()
