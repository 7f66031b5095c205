"""
職缺與照護員的技能配對
"""
import math
from typing import Iterable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")

TOP_MATCHES = 5


def match_score(caregiver_skills: Iterable[str], skill_required: Iterable[str]) -> int:
    """
    計算配對分數：round(100 × |照護員技能 ∩ 職缺技能| / |職缺技能|)

    四捨五入採 0.5 進位；職缺沒有技能需求時分數為 0。
    """
    required = set(skill_required)
    if not required:
        return 0
    overlap = len(set(caregiver_skills) & required)
    return int(math.floor(100 * overlap / len(required) + 0.5))


def skills_overlap(caregiver_skills: Iterable[str], skill_required: Iterable[str]) -> bool:
    """照護員技能與職缺技能是否有交集"""
    return bool(set(caregiver_skills) & set(skill_required))


def rank_candidates(
    candidates: Sequence[Tuple[T, Iterable[str]]],
    skill_required: Iterable[str],
    limit: int = TOP_MATCHES,
) -> List[Tuple[T, int]]:
    """
    依分數由高到低排序候選人，取前 limit 名

    參數:
        candidates: (候選人, 技能) 列表，順序即同分時的排序
        skill_required: 職缺需要的技能
        limit: 回傳數量上限

    返回:
        list: (候選人, 分數) 列表
    """
    required = list(skill_required)
    scored = [(candidate, match_score(skills, required)) for candidate, skills in candidates]
    # sorted 為穩定排序，同分時保留原本順序
    scored = sorted(scored, key=lambda item: item[1], reverse=True)
    return scored[:limit]
