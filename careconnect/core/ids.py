"""
資料編號產生器
"""
import uuid


def new_id(prefix: str) -> str:
    """
    產生帶前綴的編號

    例如：BKG-3F2A9C1D7E0B、JOB-...、PAY-...
    """
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}"
