from __future__ import annotations
import logging
import re
from typing import Any, Dict, List, Optional, Sequence
from .errors import EmptyInputError
from .models import SubjectClassification
from .utils import as_number, is_blank, is_nested, load_json, pattern, rules_path

logger = logging.getLogger(__name__)

RULES = load_json(rules_path(), {})

# 按优先级排列：先找名字像考号/学号的字段
ID_PATTERNS: List[re.Pattern] = [
    pattern(p) for p in RULES.get(
        "identity_patterns",
        ["考号", "学号", "ID", "^id$", "student_id", "uid", "no", "code"],
    )
]

STRUCTURAL_EXCLUDE = pattern(RULES.get(
    "structural_exclude",
    "(总分|total|score_sum|备注|状态|排名|序号|id|考号|学号|姓名|班级|年级|_raw|class|grade|name)",
))
# 理综、物化 之类的合并列不是独立学科
COMBINED_SUBJECT_EXCLUDE = pattern(RULES.get(
    "combined_subject_exclude",
    "(理化|史政|生地|政史|化生|物化|地政|文综|理综)",
))
DERIVED_PREFIXES = ("_", "assigned_", "combo_")
# 总分的排名指标名，学科不能同名
RESERVED_METRICS = ("raw", "assigned")

REBASING_KEYWORDS: List[str] = [
    str(k).lower() for k in RULES.get(
        "rebasing_keywords",
        ["政治", "地理", "化学", "生物", "politics", "geography", "chemistry", "biology"],
    )
]
# =========================

# 唯一标识字段
# =========================
def _column(records: Sequence[Dict[str, Any]], key: str) -> List[Any]:
    return [r.get(key) for r in records]


def _is_identity_column(values: List[Any]) -> bool:
    # 结构性检查：每条都有值、类型一致（全字符串或全数值）、且互不重复
    if not values:
        return False
    if any(is_blank(v) or is_nested(v) for v in values):
        return False
    all_str = all(isinstance(v, str) for v in values)
    all_num = all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values)
    if not (all_str or all_num):
        return False
    return len(set(values)) == len(values)


def infer_id_field(records: Sequence[Dict[str, Any]]) -> str:
    """
    从第一条记录的字段里选出唯一标识字段：
      1) 名称命中 ID_PATTERNS（按模式优先级，字段按原顺序）
      2) 否则取第一个“确实唯一”的字段
      3) 否则取第一个字段
    成绩数据和名单各自调用，可能得到不同的字段名。
    """
    if not records:
        raise EmptyInputError("cannot infer identity field from an empty record collection")

    keys = list(records[0].keys())
    if not keys:
        return ""

    for pat in ID_PATTERNS:
        for k in keys:
            if not pat.search(str(k)):
                continue
            # 嵌套值做不了标识，继续往下找
            if any(is_nested(v) for v in _column(records, k)):
                continue
            return k

    for k in keys:
        if _is_identity_column(_column(records, k)):
            return k

    return keys[0]
# =========================

# 学科识别
# =========================
def _is_subject_key(key: Any, value: Any, id_field: str) -> bool:
    if key == id_field:
        return False
    name = str(key)
    if name.startswith(DERIVED_PREFIXES) or name in RESERVED_METRICS:
        return False
    if STRUCTURAL_EXCLUDE.search(name) or COMBINED_SUBJECT_EXCLUDE.search(name):
        return False
    return as_number(value) is not None


def is_rebasing_subject(subject: str) -> bool:
    s = str(subject).lower()
    return any(kw in s for kw in REBASING_KEYWORDS)


def classify_subjects(records: Sequence[Dict[str, Any]], id_field: Optional[str] = None) -> SubjectClassification:
    """以合并后第一条记录为准识别学科字段，并分出需要赋分的科目。"""
    if not records:
        raise EmptyInputError("cannot classify subjects of an empty record collection")

    id_field = id_field or ""
    first = records[0]
    subjects = tuple(k for k, v in first.items() if _is_subject_key(k, v, id_field))
    rebasing = tuple(s for s in subjects if is_rebasing_subject(s))
    other = tuple(s for s in subjects if s not in rebasing)

    logger.debug("subjects=%s rebasing=%s", subjects, rebasing)
    return SubjectClassification(
        subjects=subjects,
        rebasing_subjects=rebasing,
        other_subjects=other,
        id_field=id_field,
    )
