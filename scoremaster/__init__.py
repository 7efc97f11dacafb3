"""
成绩处理包：
- 读取成绩 JSON 与学生名单（CSV/XLSX）
- 字段推断（考号、学科、赋分学科）
- 成绩与名单合并、班级名归一
- 原始总分 / 赋分 / 赋分总分
- 选科组合识别
- 全年级 / 班级 / 组合范围的排名
- 统计汇总与 Excel 报表
"""
from .errors import EmptyInputError, InvalidInputError, ScoreMasterError
from .models import CombinationDefinition, PipelineResult, SubjectClassification, rank_field
from .ingest import load_records_json, load_roster
from .infer import classify_subjects, infer_id_field
from .normalize import normalize_class_name, normalize_combination_label
from .merge import merge_records
from .scoring import score_records
from .combinations import assign_combinations, load_combinations
from .ranking import apply_ranks, rank_scope
from .pipeline import run_pipeline
from .summary import build_summary, order_subjects, sort_classes
from .export import export_to_excel_bytes

__all__ = [
    "ScoreMasterError",
    "EmptyInputError",
    "InvalidInputError",
    "CombinationDefinition",
    "PipelineResult",
    "SubjectClassification",
    "rank_field",
    "load_records_json",
    "load_roster",
    "infer_id_field",
    "classify_subjects",
    "normalize_class_name",
    "normalize_combination_label",
    "merge_records",
    "score_records",
    "load_combinations",
    "assign_combinations",
    "rank_scope",
    "apply_ranks",
    "run_pipeline",
    "build_summary",
    "order_subjects",
    "sort_classes",
    "export_to_excel_bytes",
]
