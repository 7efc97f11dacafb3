from __future__ import annotations
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from .errors import InvalidInputError
from .infer import infer_id_field
from .models import Record
from .normalize import UNCLASSIFIED, normalize_class_name
from .utils import is_blank, key_str, load_json, pattern, rules_path

logger = logging.getLogger(__name__)

RULES = load_json(rules_path(), {})

NAME_PATTERN = pattern(RULES.get("name_pattern", "(姓名|name|xm)"))
CLASS_PATTERN = pattern(RULES.get("class_pattern", "(班级|class|bj|bjmc)"))
GRADE_PATTERN = pattern(RULES.get("grade_pattern", "(年级|grade|nj)"))

RESOLVED_KEYS = ("_raw", "id", "name", "class", "grade")


def _first_match(row: Mapping[str, Any], pat) -> Any:
    for k in row.keys():
        if pat.search(str(k)):
            return row[k]
    return None


def _resolve(combined: Mapping[str, Any], raw: Mapping[str, Any], pat, default: Any) -> Any:
    # 优先级：成绩+名单合并视图 -> 只看成绩记录 -> 默认值
    v = _first_match(combined, pat)
    if is_blank(v):
        v = _first_match(raw, pat)
    if is_blank(v):
        v = default
    return v


def build_roster_index(roster: Sequence[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    """名单按自身推断出的标识字段建索引；同一考号出现多次时以后出现的为准。"""
    if not roster:
        return {}
    roster_id = infer_id_field(roster)
    logger.info("roster identity field: %r (%d rows)", roster_id, len(roster))

    index: Dict[str, Mapping[str, Any]] = {}
    for row in roster:
        k = key_str(row.get(roster_id))
        if not k:
            continue
        index[k] = row
    return index


def merge_records(
    raw_records: Sequence[Mapping[str, Any]],
    roster: Optional[Sequence[Mapping[str, Any]]],
    id_field: str,
) -> List[Record]:
    """
    以成绩记录为主左连接名单，补齐 姓名/班级/年级。
    返回的新记录：_raw（原记录）、id、name、class（已归一）、grade，以及原记录的全部字段。
    """
    if not isinstance(raw_records, (list, tuple)) or not raw_records:
        raise InvalidInputError("raw records must be a non-empty list of mappings")
    if any(not isinstance(r, Mapping) for r in raw_records):
        raise InvalidInputError("every raw record must be a mapping")

    index = build_roster_index(roster or [])
    hits = 0

    merged: List[Record] = []
    for row in raw_records:
        id_val = key_str(row.get(id_field))
        roster_row = index.get(id_val) if id_val else None
        if roster_row is not None:
            hits += 1
        combined = {**row, **(roster_row or {})}

        name = _resolve(combined, row, NAME_PATTERN, id_val)
        cls = _resolve(combined, row, CLASS_PATTERN, UNCLASSIFIED)
        grade = _resolve(combined, row, GRADE_PATTERN, UNCLASSIFIED)

        rec: Record = {
            "_raw": row,
            "id": id_val,
            "name": str(name).strip(),
            "class": normalize_class_name(cls),
            "grade": str(grade).strip(),
        }
        for k, v in row.items():
            if k not in RESOLVED_KEYS:
                rec[k] = v
        merged.append(rec)

    if index:
        logger.info("roster matched %d of %d records", hits, len(raw_records))
    return merged
