"""
CareConnect 照護媒合系統 - 主入口點

注意：此檔案應該通過根目錄的 main.py 或使用 'python -m careconnect.main' 執行
"""
from datetime import date, timedelta

import uvicorn

from careconnect.config import API_PORT, SEED_SAMPLE_DATA
from careconnect.core.database import SessionLocal, init_db
from careconnect.core.identity import FamilyActor
from careconnect.core.logger import get_uvicorn_log_config, setup_logger
from careconnect.models.schemas import CreateJobPostRequest
from careconnect.models.state import BackgroundCheckStatus, VerifiedStatus
from careconnect.models.user import CaregiverModel, FamilyModel
from careconnect.services.job_service import JobService

# 設置 logger
logger = setup_logger(__name__)


def create_sample_data():
    """建立開發用測試資料（家屬、照護員、職缺）"""
    db = SessionLocal()
    try:
        if db.query(FamilyModel).count() > 0:
            logger.info("已有資料，跳過建立測試資料")
            return

        db.add(FamilyModel(id="FAM-DEMO", name="王小明", email="family@example.com", phone="0912000111"))
        sample_caregivers = [
            ("CARE-DEMO-1", "陳美玲", ["medical_care", "mobility_assistance", "companionship"]),
            ("CARE-DEMO-2", "林志豪", ["medical_care"]),
            ("CARE-DEMO-3", "張雅婷", ["companionship", "meal_preparation"]),
        ]
        for caregiver_id, name, skills in sample_caregivers:
            db.add(CaregiverModel(
                id=caregiver_id,
                name=name,
                email=f"{caregiver_id.lower()}@example.com",
                skills=skills,
                verified_status=VerifiedStatus.VERIFIED,
                background_check_status=BackgroundCheckStatus.COMPLETED,
            ))
        db.commit()

        job_service = JobService(db)
        job = job_service.create_job_post(FamilyActor(id="FAM-DEMO"), CreateJobPostRequest(
            elder_name="王奶奶",
            date=date.today() + timedelta(days=3),
            start_time="09:00",
            duration_hours=4,
            salary=100,
            location="台北市信義區信義路五段7號",
            skill_required=["medical_care", "mobility_assistance"],
        ))
        logger.info(f"已建立測試職缺：{job.elder_name} (ID: {job.id})")
        logger.info(f"共建立 {len(sample_caregivers)} 位測試照護員")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main():
    """主函數"""
    # 初始化資料庫
    try:
        init_db()
        logger.info("資料庫初始化完成")
    except Exception as e:
        logger.error(f"資料庫初始化失敗：{e}", exc_info=True)
        raise

    if SEED_SAMPLE_DATA:
        create_sample_data()

    # 使用統一的日誌配置
    logger.info(f"API 伺服器啟動，監聽 http://0.0.0.0:{API_PORT}")
    logger.info(f"API 文件：http://localhost:{API_PORT}/docs")
    uvicorn.run(
        "careconnect.api.main:api_app",
        host="0.0.0.0",
        port=API_PORT,
        log_config=get_uvicorn_log_config()
    )


if __name__ == "__main__":
    main()
