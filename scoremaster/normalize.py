from __future__ import annotations
import re
from typing import Any
from .utils import is_blank, load_json, rules_path

RULES = load_json(rules_path(), {})

UNCLASSIFIED = RULES.get("unclassified", "未分类")
UNKNOWN_COMBINATION = "未知组合"

_BRACKETS_RE = re.compile(r"[()（）\[\]【】]")
_CLASS_SUFFIX_RE = re.compile(r"班级?$")
_GRADE_PREFIX_RES = [
    re.compile(p) for p in RULES.get(
        "class_grade_prefixes",
        [r"^(高|初|小)[一二三四五六]", r"^[一二三四五六七八九十]+年级"],
    )
]
# 选科标签里的分隔符：加号、逗号、顿号、分号、斜杠（半角/全角）和空白
_COMBINATION_DELIMS_RE = re.compile(r"[+＋,，、;；/／\s]")


def normalize_class_name(value: Any) -> str:
    """
    班级名归一，用作分组键：
    "高一(3)班" / "高一（3）班级" / " 3 班" -> "3班"
    年级前缀只有在去掉后还剩内容时才去掉（"高一" 保持 "高一班"）。
    """
    if is_blank(value):
        return UNCLASSIFIED

    s = str(value).strip()
    s = _BRACKETS_RE.sub("", s)
    s = re.sub(r"\s+", "", s)
    s = _CLASS_SUFFIX_RE.sub("", s)

    for prefix in _GRADE_PREFIX_RES:
        if prefix.search(s):
            stripped = prefix.sub("", s, count=1)
            if stripped:
                s = stripped

    if not s:
        return UNCLASSIFIED
    return s + "班"


def normalize_combination_label(value: Any) -> str:
    # "化+物+生" / "物、化、生" -> "化物生"（按字符排序，顺序无关）
    if is_blank(value):
        return UNKNOWN_COMBINATION
    clean = _COMBINATION_DELIMS_RE.sub("", str(value))
    return "".join(sorted(clean))
