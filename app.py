from __future__ import annotations
import logging
import streamlit as st
import pandas as pd
from scoremaster.errors import ScoreMasterError
from scoremaster.ingest import load_records_json, load_roster
from scoremaster.models import rank_field
from scoremaster.pipeline import run_pipeline
from scoremaster.summary import build_summary, class_names
from scoremaster.export import export_to_excel_bytes

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("scoremaster.app")

st.set_page_config(page_title="成绩排名分析", layout="wide")
st.title("成绩数据整理与多维排名")
# =========================

# Helpers
# =========================
def _ranking_view(result) -> pd.DataFrame:
    rows = []
    for r in result.records:
        rows.append({
            "考号": r.get("id"),
            "姓名": r.get("name"),
            "班级": r.get("class"),
            "原始总分": r.get("raw_total"),
            "年排(原始)": r.get(rank_field("cohort", "raw")),
            "班排(原始)": r.get(rank_field("class", "raw")),
            "赋分总分": r.get("assigned_total"),
            "年排(赋分)": r.get(rank_field("cohort", "assigned")),
            "班排(赋分)": r.get(rank_field("class", "assigned")),
            "选科组合": "、".join(r.get("combinations") or ()) or "-",
        })
    df = pd.DataFrame(rows)
    return df.sort_values("年排(原始)", kind="stable").reset_index(drop=True)
# =========================

# Uploads
# =========================
scores_file = st.file_uploader("上传成绩数据（JSON，对象数组）", type=["json"], accept_multiple_files=False)

st.subheader("学生名单（可选）")
roster_file = st.file_uploader(
    "上传学生信息库（XLSX/CSV），用于按考号补全姓名、班级",
    type=["xlsx", "csv"],
    accept_multiple_files=False,
)

st.subheader("报表背景水印（可选）")
watermark_file = st.file_uploader("上传水印图片（PNG/JPG）", type=["png", "jpg", "jpeg"], accept_multiple_files=False)

no_rebase = st.checkbox("不赋分（赋分学科直接使用原始分）", value=False)

st.session_state.setdefault("result", None)
st.session_state.setdefault("report_bytes", None)

st.divider()

if st.button("开始处理", type="primary", disabled=scores_file is None):
    bar = st.progress(0, text="正在初始化")

    def _on_progress(stage: str, pct: int) -> None:
        # 流程占进度条的 0..80，剩下的留给报表生成
        bar.progress(min(80, int(pct * 0.8)), text=stage)

    try:
        raw_records = load_records_json(scores_file.getvalue())
        roster = load_roster(roster_file.name, roster_file.getvalue()) if roster_file else None
        result = run_pipeline(raw_records, roster, rebase=not no_rebase, on_progress=_on_progress)

        bar.progress(85, text="生成工作簿")
        watermark = watermark_file.getvalue() if watermark_file else None
        report = export_to_excel_bytes(
            result,
            watermark=watermark,
            watermark_name=watermark_file.name if watermark_file else "",
        )
    except ScoreMasterError as e:
        logger.warning("run failed: %s", e)
        st.error(f"处理失败：{e}")
        st.stop()

    bar.progress(100, text="完成")
    st.session_state["result"] = result
    st.session_state["report_bytes"] = report
    st.success(f"处理完成：{len(result.records)} 名学生。")


result = st.session_state.get("result")
if result is not None:
    cls = result.classification

    c1, c2, c3 = st.columns(3)
    with c1:
        st.metric("学生人数", len(result.records))
    with c2:
        st.metric("学科数", len(cls.subjects))
    with c3:
        st.metric("班级数", len(class_names(result.records)))

    st.caption(f"唯一标识字段：{cls.id_field or '-'}")
    st.caption(f"学科：{'、'.join(cls.subjects) or '-'}")
    st.caption(f"赋分学科：{'、'.join(cls.rebasing_subjects) or '-'}")
    st.caption(f"选科组合：{'、'.join(d.label for d in result.combinations) or '-'}")

    st.subheader("排名")
    f1, f2 = st.columns(2)
    with f1:
        q = st.text_input("按姓名搜索", value="")
    with f2:
        groups = ["(全部)"] + class_names(result.records)
        gsel = st.selectbox("按班级筛选", groups, index=0)

    view = _ranking_view(result)
    if q.strip():
        view = view[view["姓名"].astype(str).str.contains(q.strip(), case=False, na=False)]
    if gsel != "(全部)":
        view = view[view["班级"].astype(str) == gsel]
    st.dataframe(view.head(500), width="stretch")

    st.subheader("成绩深度分析")
    st.dataframe(build_summary(result), width="stretch")

    st.download_button(
        "下载 Excel 报表",
        data=st.session_state["report_bytes"],
        file_name="成绩排名报表.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
