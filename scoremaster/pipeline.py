from __future__ import annotations
import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence
from .combinations import assign_combinations, load_combinations, populated
from .errors import EmptyInputError, InvalidInputError
from .infer import classify_subjects, infer_id_field
from .merge import merge_records
from .models import PipelineResult
from .ranking import apply_ranks
from .scoring import score_records

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

# 阶段名沿用界面上显示的文案
STAGE_IDENTIFY = "语义分析中"
STAGE_MERGE = "数据合并与清洗"
STAGE_SUBJECTS = "识别学科"
STAGE_SCORE = "计算成绩"
STAGE_COMBINATIONS = "识别选科组合"
STAGE_RANK = "计算排名"
STAGE_DONE = "完成"

_SCORE_START, _SCORE_END = 50, 75


def _validate(raw_records: Any) -> None:
    if not isinstance(raw_records, (list, tuple)):
        raise InvalidInputError(f"raw records must be a list of mappings, got {type(raw_records).__name__}")
    if not raw_records:
        raise EmptyInputError("no score records to process")
    bad = [i for i, r in enumerate(raw_records) if not isinstance(r, Mapping)]
    if bad:
        raise InvalidInputError(f"record #{bad[0]} is not a mapping ({len(bad)} invalid records)")


def run_pipeline(
    raw_records: Sequence[Mapping[str, Any]],
    roster: Optional[Sequence[Mapping[str, Any]]] = None,
    *,
    combinations: Optional[Iterable[str]] = None,
    rebase: bool = True,
    batch_size: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> PipelineResult:
    """
    成绩数据 (+ 可选名单) -> 合并、赋分、选科组合、多范围排名。

    返回 PipelineResult(records, classification, combinations)：
    records 与输入同序；combinations 只含至少有一名成员的组合。
    输入的 dict 不会被修改。
    """
    _validate(raw_records)

    def progress(stage: str, pct: int) -> None:
        if on_progress is not None:
            on_progress(stage, pct)

    progress(STAGE_IDENTIFY, 10)
    id_field = infer_id_field(raw_records)
    logger.info("identity field: %r (%d records)", id_field, len(raw_records))

    progress(STAGE_MERGE, 25)
    merged = merge_records(raw_records, roster, id_field)

    progress(STAGE_SUBJECTS, 40)
    classification = classify_subjects(merged, id_field)
    logger.info("subjects: %s", ", ".join(classification.subjects) or "-")
    logger.info("rebasing subjects: %s", ", ".join(classification.rebasing_subjects) or "-")

    progress(STAGE_SCORE, _SCORE_START)

    def on_batch(done: int, total: int) -> None:
        span = _SCORE_END - _SCORE_START
        progress(STAGE_SCORE, _SCORE_START + int(span * done / total))

    scored = score_records(
        merged,
        classification,
        rebase=rebase,
        batch_size=batch_size,
        on_batch=on_batch,
    )

    progress(STAGE_COMBINATIONS, 80)
    definitions = load_combinations(combinations)
    with_combos = assign_combinations(scored, classification, definitions)
    present = populated(with_combos, definitions)
    logger.info("combinations: %s", ", ".join(d.label for d in present) or "-")

    progress(STAGE_RANK, 90)
    ranked = apply_ranks(with_combos, classification, present)

    progress(STAGE_DONE, 100)
    return PipelineResult(records=ranked, classification=classification, combinations=present)
