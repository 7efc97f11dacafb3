from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from .models import CombinationDefinition, Record, SubjectClassification
from .normalize import normalize_combination_label
from .utils import as_number, is_blank, load_json, pattern, rules_path

logger = logging.getLogger(__name__)

RULES = load_json(rules_path(), {})

COMBINATION_FIELD_PATTERN = pattern(RULES.get("combination_field_pattern", "(选科|组合|subjects|combination)"))
DEFAULT_COMBINATIONS = RULES.get("combinations", ["物化生", "物化地", "物化政", "政史地"])

# 顺序有意义：学科名同时包含多个关键字时取第一个
SUBJECT_CODES: List[Tuple[str, str]] = [
    (str(kw).lower(), str(code)) for kw, code in RULES.get(
        "combination_subject_codes",
        [
            ["物理", "物"], ["physics", "物"],
            ["历史", "史"], ["history", "史"],
            ["化学", "化"], ["chemistry", "化"],
            ["生物", "生"], ["biology", "生"],
            ["政治", "政"], ["politics", "政"],
            ["地理", "地"], ["geography", "地"],
        ],
    )
]


def load_combinations(labels: Optional[Iterable[str]] = None) -> Tuple[CombinationDefinition, ...]:
    labels = DEFAULT_COMBINATIONS if labels is None else labels
    out: List[CombinationDefinition] = []
    seen = set()
    for lab in labels:
        lab = str(lab).strip()
        if not lab or lab in seen:
            continue
        seen.add(lab)
        out.append(CombinationDefinition(lab))
    return tuple(out)


def subject_code(subject: str) -> Optional[str]:
    s = str(subject).lower()
    for kw, code in SUBJECT_CODES:
        if kw in s:
            return code
    return None


def subject_codes(subjects: Sequence[str]) -> Dict[str, str]:
    """学科名 -> 单字代码（物/史/化/生/政/地），认不出的学科不出现在结果里。"""
    out: Dict[str, str] = {}
    for s in subjects:
        code = subject_code(s)
        if code is not None:
            out[s] = code
    return out


def _explicit_field(records: Sequence[Record]) -> Optional[str]:
    if not records:
        return None
    for k in records[0].keys():
        if str(k).startswith("_"):
            continue
        if COMBINATION_FIELD_PATTERN.search(str(k)):
            return k
    return None


def _resolve_fields(
    definitions: Sequence[CombinationDefinition],
    codes: Dict[str, str],
) -> Dict[str, Optional[List[str]]]:
    # 每个组合的每个代码对应第一个同代码的学科；有一个对不上就整组不可推断
    resolved: Dict[str, Optional[List[str]]] = {}
    for d in definitions:
        fields: List[str] = []
        for ch in d.label:
            field = next((s for s, c in codes.items() if c == ch), None)
            if field is None:
                fields = []
                break
            fields.append(field)
        resolved[d.label] = fields or None
    return resolved


def _positive(v: Any) -> bool:
    x = as_number(v)
    return x is not None and x > 0


def assign_combinations(
    records: Sequence[Record],
    classification: SubjectClassification,
    definitions: Sequence[CombinationDefinition],
) -> List[Record]:
    """
    给每条记录写入 combinations（组合标签元组，按定义顺序）。
      1) 有选科字段：标签归一后与每个组合逐一比较
      2) 选科字段没有命中时：组合涉及的学科全部有正分才算
    一条记录可以属于多个组合，也可以一个都不属于。
    """
    explicit_key = _explicit_field(records)
    codes = subject_codes(classification.subjects)
    fields = _resolve_fields(definitions, codes)
    if explicit_key:
        logger.info("combination label field: %r", explicit_key)

    out: List[Record] = []
    unmatched = 0
    for rec in records:
        matched: List[str] = []

        if explicit_key and not is_blank(rec.get(explicit_key)):
            label = normalize_combination_label(rec.get(explicit_key))
            matched = [d.label for d in definitions if d.key == label]

        if not matched:
            for d in definitions:
                required = fields[d.label]
                if required and all(_positive(rec.get(f)) for f in required):
                    matched.append(d.label)

        if not matched:
            unmatched += 1
            logger.debug("no combination for id=%s", rec.get("id"))

        new = dict(rec)
        new["combinations"] = tuple(matched)
        out.append(new)

    if unmatched:
        logger.info("%d of %d records belong to no combination", unmatched, len(records))
    return out


def populated(records: Sequence[Record], definitions: Sequence[CombinationDefinition]) -> Tuple[CombinationDefinition, ...]:
    present = set()
    for r in records:
        present.update(r.get("combinations") or ())
    return tuple(d for d in definitions if d.label in present)
