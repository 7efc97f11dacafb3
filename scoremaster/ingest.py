from __future__ import annotations
import csv
import json
import logging
import zipfile
from io import BytesIO
from typing import Any, Dict, List, Optional, Union
import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from .errors import EmptyInputError, InvalidInputError
from .utils import is_blank, norm_text

logger = logging.getLogger(__name__)

JSON_ENCODINGS = ["utf-8-sig", "utf-8", "gb18030"]
CSV_ENCODINGS = ["utf-8-sig", "utf-8", "gb18030"]
CSV_DELIMITERS = ",;\t|"
# =========================

# JSON: 成绩导出文件
# =========================
def _decode(data: Union[bytes, str], encodings: List[str]) -> str:
    if isinstance(data, str):
        return data
    last_err: Optional[UnicodeDecodeError] = None
    for enc in encodings:
        try:
            return data.decode(enc)
        except UnicodeDecodeError as e:
            last_err = e
    raise InvalidInputError(f"cannot decode score file: {last_err}")


def load_records_json(data: Union[bytes, str]) -> List[Dict[str, Any]]:
    """成绩 JSON 必须是非空的对象数组。"""
    text = _decode(data, JSON_ENCODINGS)
    try:
        parsed = json.loads(text)
    except ValueError as e:
        raise InvalidInputError(f"score file is not valid JSON: {e}") from e

    if not isinstance(parsed, list):
        raise InvalidInputError(f"score file must contain a JSON array, got {type(parsed).__name__}")
    if not parsed:
        raise EmptyInputError("score file contains no records")
    if any(not isinstance(r, dict) for r in parsed):
        raise InvalidInputError("every score record must be a JSON object")

    logger.info("loaded %d score records", len(parsed))
    return parsed
# =========================

# Excel: 第一个工作表 -> 矩阵
# =========================
def _sheet_to_matrix(wb_bytes: bytes) -> List[List[Any]]:
    wb = load_workbook(BytesIO(wb_bytes), data_only=True)
    ws = wb.worksheets[0]
    matrix = [list(row) for row in ws.iter_rows(values_only=True)]

    # 合并区域只有左上角有值，向整块区域铺开
    for rng in ws.merged_cells.ranges:
        top = ws.cell(rng.min_row, rng.min_col).value
        for r in range(rng.min_row - 1, rng.max_row):
            for c in range(rng.min_col - 1, rng.max_col):
                if is_blank(matrix[r][c]):
                    matrix[r][c] = top
    return matrix
# =========================

# CSV: 分隔符与矩阵
# =========================
def _guess_delimiter(sample_text: str) -> str:
    lines = [ln for ln in sample_text.splitlines() if ln.strip()][:20]
    if not lines:
        return ","
    try:
        return csv.Sniffer().sniff("\n".join(lines), delimiters=CSV_DELIMITERS).delimiter
    except csv.Error:
        # 嗅探不出来就看表头行里哪个分隔符最多
        counts = {d: lines[0].count(d) for d in CSV_DELIMITERS}
        best = max(CSV_DELIMITERS, key=lambda d: counts[d])
        return best if counts[best] else ","


def _read_csv_matrix(data: bytes) -> List[List[Any]]:
    # 不带表头读成矩阵，表头行由 _records_from_matrix 再找；所有单元格按字符串读，考号不会变成 2023001.0
    text = _decode(data, CSV_ENCODINGS)
    delim = _guess_delimiter(text[:65536])
    try:
        df = pd.read_csv(
            BytesIO(text.encode("utf-8")),
            header=None,
            sep=delim,
            engine="python",
            encoding="utf-8",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise InvalidInputError(f"cannot read roster CSV: {e}") from e
    return df.values.tolist()
# =========================

# 矩阵 -> 记录
# =========================
def _make_unique(cols: List[str]) -> List[str]:
    seen: Dict[str, int] = {}
    out = []
    for c in cols:
        n = seen.get(c, 0) + 1
        seen[c] = n
        out.append(c if n == 1 else f"{c}__{n}")
    return out


def _cell(v: Any) -> Any:
    if is_blank(v):
        return None
    if isinstance(v, str):
        return v.strip()
    return v


def _records_from_matrix(matrix: List[List[Any]]) -> List[Dict[str, Any]]:
    """表头 = 第一行至少有两个非空单元格的行；其后的全空行丢弃。"""
    header_idx = None
    for i, row in enumerate(matrix):
        if sum(1 for v in row if not is_blank(v)) >= 2:
            header_idx = i
            break
    if header_idx is None:
        return []

    headers = []
    for n, v in enumerate(matrix[header_idx], start=1):
        h = norm_text(v)
        headers.append(h if h else f"col_{n}")
    headers = _make_unique(headers)

    records = []
    for row in matrix[header_idx + 1:]:
        cells = [_cell(v) for v in row]
        if all(v is None for v in cells):
            continue
        cells += [None] * (len(headers) - len(cells))
        records.append(dict(zip(headers, cells)))
    return records


def load_roster(name: str, data: bytes) -> List[Dict[str, Any]]:
    """
    名单文件（学生信息库）：.csv 或 Excel（只读第一个工作表）。
    返回按表头组装的记录列表，空单元格为 None。
    """
    if name.lower().endswith(".csv"):
        matrix = _read_csv_matrix(data)
    else:
        try:
            matrix = _sheet_to_matrix(data)
        except (InvalidFileException, zipfile.BadZipFile) as e:
            raise InvalidInputError(f"cannot read roster workbook {name}: {e}") from e

    records = _records_from_matrix(matrix)
    logger.info("loaded %d roster rows from %s", len(records), name)
    return records
