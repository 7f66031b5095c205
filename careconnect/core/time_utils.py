"""
時間相關工具（寫入 DB 一律使用 UTC）
"""
import re
from datetime import datetime, timezone
from typing import Optional

# 24 小時制 HH:MM
HHMM_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


def utc_now() -> datetime:
    """回傳目前 UTC 時間（naive datetime，供寫入 DB 使用）。"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_valid_hhmm(value: Optional[str]) -> bool:
    """檢查字串是否為合法的 HH:MM（24 小時制）"""
    return bool(value) and HHMM_PATTERN.match(value) is not None


def compute_end_time(start_time: Optional[str], duration_hours: Optional[float]) -> Optional[str]:
    """
    由開始時間與時數推算結束時間（跨午夜時回繞）。

    例如 "22:30" + 3 小時 -> "01:30"
    """
    if not start_time or not duration_hours or not is_valid_hhmm(start_time):
        return None
    hours, minutes = (int(part) for part in start_time.split(":"))
    total_minutes = hours * 60 + minutes + round(duration_hours * 60)
    end_h = (total_minutes // 60) % 24
    end_m = total_minutes % 60
    return f"{end_h:02d}:{end_m:02d}"
