import pytest
import sys
from pathlib import Path

# Add repo root to sys.path so we can import scoremaster without installing
ROOT_PATH = Path(__file__).resolve().parent.parent
if ROOT_PATH.as_posix() not in sys.path:
    sys.path.insert(0, ROOT_PATH.as_posix())


# Common test fixtures
@pytest.fixture
def two_students():
    """Two students, two plain subjects, no roster fields."""
    return [
        {"id": "A", "chinese": 100, "math": 100},
        {"id": "B", "chinese": 90, "math": 90},
    ]


@pytest.fixture
def cohort_records():
    """Small cohort with Chinese headers, classes, two rebasing subjects and a declared total."""
    return [
        {"考号": "2023001", "姓名": "张三", "班级": "高一(1)班", "语文": 120, "数学": 130, "物理": 80, "化学": 90, "生物": 70, "总分": 490},
        {"考号": "2023002", "姓名": "李四", "班级": "高一(1)班", "语文": 110, "数学": 140, "物理": 70, "化学": 60, "生物": 100, "总分": 480},
        {"考号": "2023003", "姓名": "王五", "班级": "高一(2)班", "语文": 100, "数学": 100, "物理": 0, "化学": 75, "生物": 85, "总分": 360},
        {"考号": "2023004", "姓名": "赵六", "班级": "高一（2）班", "语文": 130, "数学": 120, "物理": 90, "化学": 90, "生物": 40, "总分": 470},
    ]


@pytest.fixture
def roster_rows():
    """Roster keyed by 学号 (numbers as the spreadsheet would give them)."""
    return [
        {"学号": 2023001.0, "姓名": "张三", "班级": "3班"},
        {"学号": 2023002.0, "姓名": "李四", "班级": "3班"},
    ]
