import re
import json
import math
from pathlib import Path
from typing import Any, Optional, Union

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_DATA_DIR = BASE_DIR / "data"

Number = Union[int, float]


def load_json(path: Path, default: Any):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError):
        return default


def rules_path() -> Path:
    return DEFAULT_DATA_DIR / "rules.json"


def pattern(expr: str) -> "re.Pattern[str]":
    # 规则里的字段名模式一律忽略大小写
    return re.compile(expr, re.I)


_NBSP_RE = re.compile(r"[\u00A0\u2007\u202F\u3000]")  # 不换行空格 + 全角空格


def norm_text(s: Any) -> str:
    """
    表头文本的统一清洗：
    - BOM / 不换行空格 / 全角空格
    - 外层引号
    - 连续空白合并
    """
    if s is None:
        return ""

    s = str(s)
    s = s.replace("\ufeff", "")
    s = _NBSP_RE.sub(" ", s)
    s = s.strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ('"', "'"):
        s = s[1:-1].strip()
    s = re.sub(r"\s+", " ", s).strip()
    return s


def is_nested(v: Any) -> bool:
    return isinstance(v, (dict, list, tuple, set, frozenset))


def is_blank(v: Any) -> bool:
    # None、空串、纯空白、NaN（pandas 读入的空单元格）都算空
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    if isinstance(v, str) and not v.strip():
        return True
    return False


def as_number(v: Any) -> Optional[Number]:
    """
    单元格的数值，无法转换时返回 None。
    bool 与嵌套结构不算数值；字符串允许首尾空白。
    """
    if v is None or isinstance(v, bool) or is_nested(v):
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        if math.isnan(v) or math.isinf(v):
            return None
        return v
    s = str(v).strip()
    if not s:
        return None
    try:
        x = float(s)
    except ValueError:
        return None
    if math.isnan(x) or math.isinf(x):
        return None
    return int(x) if x.is_integer() else x


def num_or_zero(v: Any) -> Number:
    x = as_number(v)
    return 0 if x is None else x


def tidy_number(x: Number) -> Number:
    # 85.0 -> 85
    if isinstance(x, float) and x.is_integer():
        return int(x)
    return x


def key_str(v: Any) -> str:
    """成绩与名单之间按考号对齐用的字符串键（2023001.0 -> "2023001"）。"""
    if is_blank(v) or is_nested(v):
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()
