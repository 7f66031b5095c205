"""
稽核紀錄服務
"""
from typing import Optional
from sqlalchemy.orm import Session

from careconnect.core.ids import new_id
from careconnect.core.logger import setup_logger
from careconnect.core.pagination import paginate
from careconnect.core.time_utils import utc_now
from careconnect.models.audit import AuditLogModel
from careconnect.models.schemas import AuditLog, Page

# 設置 logger
logger = setup_logger(__name__)


class AuditService:
    """稽核紀錄服務（只新增，寫入失敗不影響觸發它的操作）"""

    def __init__(self, db: Session):
        """
        初始化稽核服務

        參數:
            db: 資料庫會話
        """
        self.db = db

    def record(self, actor_id: str, actor_table: str, action: str, target_table: str, target_id: str) -> bool:
        """
        新增一筆稽核紀錄

        應在狀態變更 commit 之後呼叫；失敗時只記錄日誌並回滾這筆寫入。

        返回:
            bool: 是否寫入成功
        """
        try:
            self.db.add(AuditLogModel(
                id=new_id("AUD"),
                actor_id=actor_id,
                actor_table=actor_table,
                action=action,
                target_table=target_table,
                target_id=target_id,
                created_at=utc_now(),
            ))
            self.db.commit()
            return True
        except Exception as e:
            self.db.rollback()
            logger.warning(
                f"稽核紀錄寫入失敗：{actor_table}:{actor_id} {action} {target_table}:{target_id}（{e}）",
                exc_info=True
            )
            return False

    def list_audit_logs(
        self,
        page: int = 1,
        limit: int = 10,
        actor_table: Optional[str] = None,
        target_table: Optional[str] = None,
        target_id: Optional[str] = None,
    ) -> Page[AuditLog]:
        """取得稽核紀錄（新到舊）"""
        query = self.db.query(AuditLogModel)
        if actor_table:
            query = query.filter(AuditLogModel.actor_table == actor_table)
        if target_table:
            query = query.filter(AuditLogModel.target_table == target_table)
        if target_id:
            query = query.filter(AuditLogModel.target_id == target_id)

        rows, total, total_pages = paginate(query.order_by(AuditLogModel.created_at.desc()), page, limit)
        return Page[AuditLog](
            items=[
                AuditLog(
                    id=row.id,
                    actor_id=row.actor_id,
                    actor_table=row.actor_table,
                    action=row.action,
                    target_table=row.target_table,
                    target_id=row.target_id,
                    created_at=row.created_at,
                )
                for row in rows
            ],
            total=total,
            total_pages=total_pages,
            current_page=page,
        )
