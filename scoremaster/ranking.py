from __future__ import annotations
import logging
from typing import Any, Callable, Dict, List, Sequence, Tuple, Union
import pandas as pd
from .models import CombinationDefinition, Record, SubjectClassification, rank_field
from .utils import num_or_zero

logger = logging.getLogger(__name__)

Metric = Union[str, Callable[[Record], Any]]


def _values(members: Sequence[Record], metric: Metric) -> List[float]:
    if callable(metric):
        return [float(num_or_zero(metric(m))) for m in members]
    return [float(num_or_zero(m.get(metric))) for m in members]


def _competition_rank(values: pd.Series) -> pd.Series:
    # 1224 式排名：并列同名次，之后跳号
    return values.fillna(0).rank(method="min", ascending=False).astype(int)


def rank_scope(members: Sequence[Record], metric: Metric) -> List[int]:
    """
    对一个范围内的成员按 metric 从高到低排名，返回与 members 同序的名次。
    metric 为字段名或取值函数；缺失/非数值按 0 计。
    """
    if not members:
        return []
    s = pd.Series(_values(members, metric), dtype="float64")
    return [int(x) for x in _competition_rank(s)]


def rank_metrics(classification: SubjectClassification) -> List[Tuple[str, str]]:
    """(排名字段里的指标名, 记录里的取值字段)，顺序即输出字段顺序。"""
    metrics = [("raw", "raw_total"), ("assigned", "assigned_total")]
    metrics += [(s, s) for s in classification.subjects]
    metrics += [(f"assigned_{s}", f"assigned_{s}") for s in classification.rebasing_subjects]
    return metrics


def _rank_frame(df: pd.DataFrame, classes: pd.Series, columns: Dict[str, str]) -> Dict[str, pd.Series]:
    # columns: 指标名 -> df 列名；同时出 cohort 和 class 两套
    out: Dict[str, pd.Series] = {}
    for metric, col in columns.items():
        values = df[col].fillna(0)
        out[rank_field("cohort", metric)] = _competition_rank(values)
        out[rank_field("class", metric)] = (
            values.groupby(classes).rank(method="min", ascending=False).astype(int)
        )
    return out


def apply_ranks(
    records: Sequence[Record],
    classification: SubjectClassification,
    definitions: Sequence[CombinationDefinition],
) -> List[Record]:
    """
    为每条记录写入所有 (范围, 指标) 的名次：
      - 全年级 / 班级：原始总分、赋分总分、各学科原始分、各赋分学科的赋分
      - 选科组合内的全年级 / 班级：原始总分、赋分总分（只有组合成员才有）
    各组排名互不影响；返回的新记录保持输入顺序。
    """
    if not records:
        return []

    metrics = rank_metrics(classification)
    df = pd.DataFrame(
        {col: _values(records, col) for _, col in metrics},
        index=range(len(records)),
    )
    classes = pd.Series([str(r.get("class")) for r in records], index=df.index)

    ranks: Dict[str, pd.Series] = _rank_frame(df, classes, {m: col for m, col in metrics})

    for d in definitions:
        mask = pd.Series([d.label in (r.get("combinations") or ()) for r in records], index=df.index)
        if not mask.any():
            continue
        sub = df.loc[mask]
        combo_cols = {f"combo_{d.label}_raw": "raw_total", f"combo_{d.label}_assigned": "assigned_total"}
        ranks.update(_rank_frame(sub, classes.loc[mask], combo_cols))
        logger.debug("combination %s: %d members", d.label, int(mask.sum()))

    # 组合排名的 Series 只含成员行，转成 dict 后按行号取
    by_row = {field: series.to_dict() for field, series in ranks.items()}
    out: List[Record] = []
    for i, rec in enumerate(records):
        new = dict(rec)
        for field, values in by_row.items():
            if i in values:
                new[field] = int(values[i])
        out.append(new)
    return out
