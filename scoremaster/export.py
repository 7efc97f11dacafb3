from __future__ import annotations
import logging
import re
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence, Set
import pandas as pd
from .models import PipelineResult, Record, rank_field
from .summary import COHORT_GROUP, build_summary, class_names, order_subjects
from .utils import as_number, is_blank

logger = logging.getLogger(__name__)

FONT = "Microsoft YaHei"
COLORS = {
    "header_fixed": "#334155",
    "header_total": "#1D4ED8",
    "header_rebasing": "#0F766E",
    "header_other": "#7C3AED",
    "header_summary": "#0F172A",
    "header_combo": "#059669",
    "row_even": "#F8FAFC",
    "row_odd": "#FFFFFF",
    "highlight_grade": "#DBEAFE",
    "highlight_total": "#F3E8FF",
    "border": "#94A3B8",
}

SHEET_GRADE_TOTAL = "全年级总分排行"
SHEET_SUMMARY = "成绩深度分析"

_BAD_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")
_SHEET_NAME_MAX = 31
TEXT_HEADERS = {"班级", "姓名", "组合"}


def safe_sheet_name(name: str, used: Set[str]) -> str:
    """Excel 工作表名：最多 31 字符，不含 []:*?/\\，不区分大小写地去重。"""
    base = _BAD_SHEET_CHARS.sub("_", str(name)).strip("'").strip() or "Sheet"
    base = base[:_SHEET_NAME_MAX]
    candidate = base
    n = 1
    while candidate.lower() in used:
        n += 1
        suffix = f"({n})"
        candidate = base[:_SHEET_NAME_MAX - len(suffix)] + suffix
    used.add(candidate.lower())
    return candidate


def _cell_value(v: Any, text: bool = False) -> Any:
    if is_blank(v):
        return ""
    # 班级、姓名等文本列原样写出，"0012301" 不能变成 12301
    if text:
        return v
    x = as_number(v)
    return v if x is None else x


class _Formats:
    # xlsxwriter 的 Format 要复用，按属性缓存
    def __init__(self, wb, watermark: bool):
        self.wb = wb
        self.watermark = watermark
        self._cache: Dict[tuple, Any] = {}

    def _get(self, **props):
        key = tuple(sorted(props.items()))
        if key not in self._cache:
            base = {
                "font_name": FONT,
                "align": "center",
                "valign": "vcenter",
                "text_wrap": True,
                "border": 1,
                "border_color": COLORS["border"],
            }
            base.update(props)
            self._cache[key] = self.wb.add_format(base)
        return self._cache[key]

    def header(self, color: str):
        return self._get(bold=True, font_size=11, font_color="#FFFFFF", bg_color=color)

    def body(self, row_no: int, *, bold: bool = False, fill: Optional[str] = None):
        # 有水印时正文不填充底色，背景图才能透出来
        props: Dict[str, Any] = {"font_size": 10}
        if bold:
            props["bold"] = True
        if not self.watermark:
            props["bg_color"] = fill or (COLORS["row_even"] if row_no % 2 == 0 else COLORS["row_odd"])
        return self._get(**props)


def _add_sheet(writer, name: str, used: Set[str], watermark: Optional[bytes]):
    sheet_name = safe_sheet_name(name, used)
    ws = writer.book.add_worksheet(sheet_name)
    writer.sheets[sheet_name] = ws
    if watermark:
        ws.set_background(BytesIO(watermark), is_byte_stream=True)
    return ws


def _write_table(ws, fmts: _Formats, header: List[str], rows: List[List[Any]], color: str, widths: List[int]):
    for c, name in enumerate(header):
        ws.write(0, c, name, fmts.header(color))
    text_cols = {c for c, name in enumerate(header) if name in TEXT_HEADERS}
    for i, row in enumerate(rows, start=1):
        fmt = fmts.body(i)
        for c, v in enumerate(row):
            ws.write(i, c, _cell_value(v, c in text_cols), fmt)
    for c, w in enumerate(widths):
        ws.set_column(c, c, w)
    ws.freeze_panes(1, 0)


def _sorted_by(records: Sequence[Record], field: str, tie_by_id: bool = False) -> List[Record]:
    if tie_by_id:
        return sorted(records, key=lambda r: (r.get(field, 0), str(r.get("id"))))
    return sorted(records, key=lambda r: r.get(field, 0))
# =========================

# 1) 全年级总分排行
# =========================
def _grade_total_sheet(writer, fmts, used, result: PipelineResult, watermark):
    records = result.records
    cls = result.classification
    multi = len(cls.subjects) >= 2
    single_rebasing = len(cls.subjects) == 1 and cls.has_rebasing
    two_lists = multi or single_rebasing

    if multi:
        header = ["序号", "班级", "姓名", "原始总分", "", "", "", "序号", "班级", "姓名", "赋分总分"]
    elif single_rebasing:
        header = ["序号", "班级", "姓名", "原始成绩", "", "", "", "序号", "班级", "姓名", "赋分成绩"]
    else:
        header = ["序号", "班级", "姓名", "原始成绩"]

    raw_list = _sorted_by(records, rank_field("cohort", "raw"))
    assigned_list = _sorted_by(records, rank_field("cohort", "assigned"))

    rows = []
    for i, (r, a) in enumerate(zip(raw_list, assigned_list), start=1):
        row = [i, r.get("class"), r.get("name"), r.get("raw_total")]
        if two_lists:
            row += ["", "", "", i, a.get("class"), a.get("name"), a.get("assigned_total")]
        rows.append(row)

    ws = _add_sheet(writer, SHEET_GRADE_TOTAL, used, watermark)
    _write_table(ws, fmts, header, rows, COLORS["header_total"], [8, 14, 14, 12, 3, 3, 3, 8, 14, 14, 12])
# =========================

# 2) 选科组合排行
# =========================
def _combination_sheet(writer, fmts, used, result: PipelineResult, label: str, watermark):
    members = [r for r in result.records if label in (r.get("combinations") or ())]
    raw_rank = rank_field("cohort", f"combo_{label}_raw")
    assigned_rank = rank_field("cohort", f"combo_{label}_assigned")

    header = ["序号", "班级", "姓名", "组合", "原始总分", "组合排名", "",
              "序号", "班级", "姓名", "组合", "赋分总分", "组合排名"]
    rows = []
    raw_list = _sorted_by(members, raw_rank)
    assigned_list = _sorted_by(members, assigned_rank)
    for i, (r, a) in enumerate(zip(raw_list, assigned_list), start=1):
        rows.append([
            i, r.get("class"), r.get("name"), label, r.get("raw_total"), r.get(raw_rank, "-"),
            "",
            i, a.get("class"), a.get("name"), label, a.get("assigned_total"), a.get(assigned_rank, "-"),
        ])

    ws = _add_sheet(writer, f"{label}成绩排行", used, watermark)
    _write_table(ws, fmts, header, rows, COLORS["header_other"], [8, 14, 14, 12, 10, 10, 3, 8, 14, 14, 12, 10, 10])
# =========================

# 3) 单科排行
# =========================
def _subject_sheet(writer, fmts, used, result: PipelineResult, subject: str, watermark):
    records = result.records
    rebasing = subject in result.classification.rebasing_subjects
    assigned_key = f"assigned_{subject}"

    header = ["序号", "班级", "姓名", "原始成绩"]
    if rebasing:
        header += ["", "", "", "序号", "班级", "姓名", "赋分成绩"]

    raw_list = _sorted_by(records, rank_field("cohort", subject), tie_by_id=True)
    assigned_list = _sorted_by(records, rank_field("cohort", assigned_key), tie_by_id=True) if rebasing else []

    rows = []
    for i, r in enumerate(raw_list, start=1):
        row = [i, r.get("class"), r.get("name"), r.get(subject)]
        if rebasing:
            a = assigned_list[i - 1]
            row += ["", "", "", i, a.get("class"), a.get("name"), a.get(assigned_key)]
        rows.append(row)

    color = COLORS["header_rebasing"] if rebasing else COLORS["header_other"]
    ws = _add_sheet(writer, f"{subject}成绩排行", used, watermark)
    _write_table(ws, fmts, header, rows, color, [8, 14, 14, 12, 3, 3, 3, 8, 14, 14, 12])
# =========================

# 4) 班级总分排行（两行表头）
# =========================
def _class_sheet(writer, fmts, used, result: PipelineResult, class_name: str, watermark):
    cls = result.classification
    members = _sorted_by(
        [r for r in result.records if str(r.get("class")) == class_name],
        rank_field("class", "raw"),
    )

    # (第一行标题, 第二行子标题列表, 标题合并宽度, 颜色)
    blocks = [("总分汇总", ["原始分", "班排", "年排", "", "赋分", "班排", "年排"], 7, COLORS["header_total"])]
    for d in result.combinations:
        blocks.append((f"{d.label}统计", ["赋分", "班排", "年排", ""], 3, COLORS["header_combo"]))
    for s in cls.rebasing_subjects:
        blocks.append((s, ["原始分", "班排", "年排", "", "赋分", "班排", "年排"], 7, COLORS["header_rebasing"]))
    for s in cls.other_subjects:
        blocks.append((s, ["得分", "班排", "年排"], 3, COLORS["header_other"]))

    ws = _add_sheet(writer, f"{class_name}总分排行", used, watermark)

    fixed_fmt = fmts.header(COLORS["header_fixed"])
    for c, name in enumerate(["序号", "班级", "姓名"]):
        ws.merge_range(0, c, 1, c, name, fixed_fmt)

    col = 3
    for title, subs, span, color in blocks:
        fmt = fmts.header(color)
        ws.merge_range(0, col, 0, col + span - 1, title, fmt)
        for j in range(span, len(subs)):
            ws.write(0, col + j, "", fmt)
        for j, sub in enumerate(subs):
            ws.write(1, col + j, sub, fmt)
            ws.set_column(col + j, col + j, 3 if sub == "" else 8)
        col += len(subs)

    def ranks(r: Record, metric: str) -> List[Any]:
        return [r.get(rank_field("class", metric)), r.get(rank_field("cohort", metric))]

    for i, r in enumerate(members, start=1):
        row: List[Any] = [i, r.get("class"), r.get("name")]
        row += [r.get("raw_total")] + ranks(r, "raw") + [""]
        row += [r.get("assigned_total")] + ranks(r, "assigned")
        for d in result.combinations:
            if d.label in (r.get("combinations") or ()):
                row += [r.get("assigned_total")] + ranks(r, f"combo_{d.label}_assigned") + [""]
            else:
                row += ["-", "-", "-", ""]
        for s in cls.rebasing_subjects:
            row += [r.get(s)] + ranks(r, s) + [""]
            row += [r.get(f"assigned_{s}")] + ranks(r, f"assigned_{s}")
        for s in cls.other_subjects:
            row += [r.get(s)] + ranks(r, s)

        fmt = fmts.body(i)
        for c, v in enumerate(row):
            ws.write(i + 1, c, _cell_value(v, c in (1, 2)), fmt)

    ws.set_column(0, 0, 8)
    ws.set_column(1, 2, 14)
    ws.freeze_panes(2, 0)
# =========================

# 5) 成绩深度分析
# =========================
def _summary_sheet(writer, fmts, used, summary_df: pd.DataFrame, watermark):
    sheet_name = safe_sheet_name(SHEET_SUMMARY, used)
    summary_df.to_excel(writer, index=False, sheet_name=sheet_name)
    ws = writer.sheets[sheet_name]
    if watermark:
        ws.set_background(BytesIO(watermark), is_byte_stream=True)

    for c, name in enumerate(summary_df.columns):
        ws.write(0, c, name, fmts.header(COLORS["header_summary"]))

    # 全年级 与 总分 行加粗高亮，其余斑马纹
    for i, (group, item) in enumerate(zip(summary_df["统计群体"], summary_df["项目"]), start=1):
        emphasized = group == COHORT_GROUP or "总分" in str(item)
        fill = None
        if group == COHORT_GROUP:
            fill = COLORS["highlight_grade"]
        elif "总分" in str(item):
            fill = COLORS["highlight_total"]
        ws.set_row(i, None, fmts.body(i, bold=emphasized, fill=fill))

    for c, w in enumerate([15, 15, 10, 10, 10, 10, 10, 40, 40]):
        ws.set_column(c, c, w)
    ws.freeze_panes(1, 0)


def export_to_excel_bytes(
    result: PipelineResult,
    watermark: Optional[bytes] = None,
    watermark_name: str = "",
) -> bytes:
    """
    生成成绩报表 xlsx：
      全年级总分排行 -> 各选科组合排行 -> 各学科排行 -> 各班总分排行 -> 成绩深度分析
    watermark 为图片字节时设为每个工作表的背景，正文不再填充底色。
    """
    if watermark:
        logger.info("watermark image: %s (%d bytes)", watermark_name or "-", len(watermark))

    bio = BytesIO()
    used: Set[str] = set()
    summary_df = build_summary(result)

    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        fmts = _Formats(writer.book, watermark=bool(watermark))

        _grade_total_sheet(writer, fmts, used, result, watermark)

        for d in result.combinations:
            _combination_sheet(writer, fmts, used, result, d.label, watermark)

        for s in order_subjects(result.classification.subjects):
            _subject_sheet(writer, fmts, used, result, s, watermark)

        classes = class_names(result.records)
        logger.info("writing %d class sheets", len(classes))
        for c in classes:
            _class_sheet(writer, fmts, used, result, c, watermark)

        _summary_sheet(writer, fmts, used, summary_df, watermark)

    return bio.getvalue()
