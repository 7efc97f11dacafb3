from __future__ import annotations
import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from .models import Record, SubjectClassification
from .utils import Number, as_number, load_json, num_or_zero, pattern, rules_path, tidy_number

logger = logging.getLogger(__name__)

RULES = load_json(rules_path(), {})

DECLARED_TOTAL_PATTERN = pattern(RULES.get("declared_total_pattern", "(总分|total|score_sum)"))
TOTAL_TOLERANCE = float(RULES.get("total_tolerance", 2))
REBASE_LOW, REBASE_HIGH = (float(x) for x in RULES.get("rebase_range", [40, 100]))
BATCH_SIZE = int(RULES.get("batch_size", 5000))

BatchCallback = Callable[[int, int], None]


def compute_subject_stats(records: Sequence[Record], subjects: Sequence[str]) -> Dict[str, Tuple[Number, Number]]:
    # 全年级口径的 (min, max)，缺考按 0 计
    stats: Dict[str, Tuple[Number, Number]] = {}
    if not records:
        return stats
    for s in subjects:
        values = [num_or_zero(r.get(s)) for r in records]
        stats[s] = (min(values), max(values))
    return stats


def rebase_score(s: Number, lo: Number, hi: Number) -> Number:
    """线性映射到 [40, 100] 并四舍五入（.5 进位）；全员同分时保持原分。"""
    if hi == lo:
        return s
    x = REBASE_LOW + ((s - lo) / (hi - lo)) * (REBASE_HIGH - REBASE_LOW)
    return int(math.floor(x + 0.5))


def _declared_total(rec: Record) -> Optional[Number]:
    for k in rec.keys():
        if DECLARED_TOTAL_PATTERN.search(str(k)):
            return as_number(rec[k])
    return None


def reconcile_total(rec: Record, calculated: Number) -> Number:
    # 与表里自带的总分相差不超过 2 分时采用表里的值（录入时的取整误差）
    declared = _declared_total(rec)
    if declared is not None and abs(declared - calculated) <= TOTAL_TOLERANCE:
        return declared
    if declared is not None:
        logger.debug("declared total %s discarded for id=%s (calculated %s)", declared, rec.get("id"), calculated)
    return calculated


def _score_one(
    rec: Record,
    classification: SubjectClassification,
    stats: Dict[str, Tuple[Number, Number]],
    rebase: bool,
) -> Record:
    out = dict(rec)
    calculated: Number = 0
    for s in classification.subjects:
        calculated += num_or_zero(rec.get(s))

    raw_total = reconcile_total(rec, calculated)
    assigned_total = raw_total

    if classification.rebasing_subjects:
        raw_sum: Number = 0
        for s in classification.rebasing_subjects:
            raw_sum += num_or_zero(rec.get(s))
        assigned_total -= raw_sum

        for s in classification.rebasing_subjects:
            v = num_or_zero(rec.get(s))
            if rebase:
                lo, hi = stats[s]
                assigned = rebase_score(v, lo, hi)
            else:
                assigned = v
            out[f"assigned_{s}"] = tidy_number(assigned)
            assigned_total += assigned

    out["raw_total"] = tidy_number(raw_total)
    out["assigned_total"] = tidy_number(assigned_total)
    return out


def score_records(
    records: Sequence[Record],
    classification: SubjectClassification,
    *,
    rebase: bool = True,
    batch_size: Optional[int] = None,
    on_batch: Optional[BatchCallback] = None,
) -> List[Record]:
    """
    计算原始总分、赋分与赋分总分，返回新的记录列表。
    按批处理，每批结束调用 on_batch(已处理, 总数) 把控制权交还给宿主（界面进度条等）；
    min/max 在分批之前对全体记录一次算好，分批不影响任何结果。
    """
    size = BATCH_SIZE if batch_size is None else int(batch_size)
    if size <= 0:
        raise ValueError("batch_size must be positive")

    stats = compute_subject_stats(records, classification.rebasing_subjects) if rebase else {}
    if stats:
        logger.info("rebasing stats: %s", stats)

    total = len(records)
    out: List[Record] = []
    for start in range(0, total, size):
        batch = records[start:start + size]
        out.extend(_score_one(r, classification, stats, rebase) for r in batch)
        if on_batch is not None:
            on_batch(len(out), total)
    return out
