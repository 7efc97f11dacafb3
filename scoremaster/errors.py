class ScoreMasterError(Exception):
    """成绩处理流程中的致命错误基类。"""


class EmptyInputError(ScoreMasterError, ValueError):
    """成绩记录为空，推断无从开始。"""


class InvalidInputError(ScoreMasterError, TypeError):
    """输入不是由映射组成的非空列表。"""
