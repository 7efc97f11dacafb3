from __future__ import annotations
import re
from typing import Any, Dict, Iterable, List, Sequence
import numpy as np
import pandas as pd
from .models import PipelineResult, Record
from .utils import load_json, num_or_zero, rules_path, tidy_number

RULES = load_json(rules_path(), {})

SUBJECT_ORDER: List[str] = RULES.get(
    "subject_order",
    ["语文", "数学", "英语", "物理", "历史", "化学", "生物", "地理", "政治"],
)

COHORT_GROUP = "全年级"
SUMMARY_COLUMNS = [
    "统计群体", "项目", "参考人数", "平均分", "中位数",
    "最高分", "最低分", "高分名单 (Top 5)", "低分名单 (Bottom 5)",
]
HOLDERS_LIMIT = 5


def _class_key(name: str):
    digits = re.sub(r"\D", "", str(name))
    return (int(digits) if digits else 0, str(name))


def sort_classes(names: Iterable[str]) -> List[str]:
    # "2班" < "10班"；没有数字的排最前，再按名称
    return sorted(set(names), key=_class_key)


def order_subjects(subjects: Sequence[str]) -> List[str]:
    """报表里的学科顺序：语数英物史化生地政在前，其余学科按原顺序接在后面。"""
    ordered: List[str] = []
    for kw in SUBJECT_ORDER:
        for s in subjects:
            if kw in s and s not in ordered:
                ordered.append(s)
    ordered += [s for s in subjects if s not in ordered]
    return ordered


def class_names(records: Sequence[Record]) -> List[str]:
    return sort_classes(str(r.get("class")) for r in records)


def _holders(rows: Sequence[Record], values: np.ndarray, target: float) -> str:
    names = [str(rows[i].get("name")) for i in np.flatnonzero(values == target)]
    if not names:
        return "-"
    if len(names) > HOLDERS_LIMIT:
        return f"{names[0]}, {names[1]} 等 {len(names)} 人"
    return "、".join(names)


def _stat_row(group: str, item: str, rows: Sequence[Record], field: str) -> Dict[str, Any]:
    values = np.array([float(num_or_zero(r.get(field))) for r in rows], dtype=float)
    hi, lo = values.max(), values.min()
    return {
        "统计群体": group,
        "项目": item,
        "参考人数": len(rows),
        "平均分": round(float(np.mean(values)), 1),
        "中位数": round(float(np.median(values)), 1),
        "最高分": tidy_number(float(hi)),
        "最低分": tidy_number(float(lo)),
        "高分名单 (Top 5)": _holders(rows, values, hi),
        "低分名单 (Bottom 5)": _holders(rows, values, lo),
    }


def build_summary(result: PipelineResult) -> pd.DataFrame:
    """
    成绩深度分析表：全年级 + 各班，每组依次统计
    原始总分、赋分总分（有赋分学科时）、各学科原始分、各选科组合的赋分总分。
    """
    records = result.records
    classification = result.classification
    if not records:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    groups = [(COHORT_GROUP, list(records))]
    for cls in class_names(records):
        groups.append((cls, [r for r in records if str(r.get("class")) == cls]))

    rows: List[Dict[str, Any]] = []
    for group, members in groups:
        rows.append(_stat_row(group, "原始总分", members, "raw_total"))
        if classification.has_rebasing:
            rows.append(_stat_row(group, "赋分总分", members, "assigned_total"))
        for s in classification.subjects:
            rows.append(_stat_row(group, s, members, s))
        for d in result.combinations:
            sub = [r for r in members if d.label in (r.get("combinations") or ())]
            if sub:
                rows.append(_stat_row(group, f"组合: {d.label}", sub, "assigned_total"))

    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
