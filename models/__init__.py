"""
数据模型模块
定义作品、参考资料、剧本批次与应用状态
"""

from .project import (
    CLEAR,
    SELECTION_FIELDS,
    ApplicationState,
    BatchStatus,
    GenerationBatch,
    ProductionMode,
    Project,
    ProjectUpdate,
    Screen,
)
from .reference_document import DocumentRole, ReferenceDocument, new_id

__all__ = [
    "ApplicationState",
    "BatchStatus",
    "CLEAR",
    "DocumentRole",
    "GenerationBatch",
    "ProductionMode",
    "Project",
    "ProjectUpdate",
    "ReferenceDocument",
    "SELECTION_FIELDS",
    "Screen",
    "new_id",
]
