"""
流程中传递的值对象。

记录本身是普通 dict（字段名 -> 标量），各阶段返回新的记录列表；
这里只放每次运行推断一次、之后只读的元数据。
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, NamedTuple, Tuple

Record = Dict[str, Any]


@dataclass(frozen=True)
class CombinationDefinition:
    """选科组合，如 物化生：一组单字学科代码，与顺序无关。"""

    label: str

    def __post_init__(self):
        if not self.label:
            raise ValueError("combination label cannot be empty")

    @property
    def codes(self) -> FrozenSet[str]:
        return frozenset(self.label)

    @property
    def key(self) -> str:
        # 与 normalize_combination_label 的结果直接比较
        return "".join(sorted(self.label))


@dataclass(frozen=True)
class SubjectClassification:
    subjects: Tuple[str, ...]
    rebasing_subjects: Tuple[str, ...]
    other_subjects: Tuple[str, ...]
    id_field: str = ""

    @property
    def has_rebasing(self) -> bool:
        return bool(self.rebasing_subjects)


class PipelineResult(NamedTuple):
    records: List[Record]
    classification: SubjectClassification
    combinations: Tuple[CombinationDefinition, ...]


def rank_field(scope: str, metric: str) -> str:
    """
    排名字段名，scope 为 cohort / class，metric 为 raw、assigned、学科名、assigned_<学科>
    或 combo_<组合>_raw / combo_<组合>_assigned。
    """
    return f"{scope}_rank_{metric}"
