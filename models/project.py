"""
作品、剧本批次与应用状态的数据模型

所有模型都是不可变的：修改操作返回新的实例，集合字段使用 tuple。
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from models.reference_document import DocumentRole, ReferenceDocument, new_id

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_utc() -> datetime:
    """当前时间，精度截断到毫秒以便与持久化格式一致"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def datetime_to_millis(value: datetime) -> int:
    return (value - _EPOCH) // timedelta(milliseconds=1)


def millis_to_datetime(value: int) -> datetime:
    try:
        return _EPOCH + timedelta(milliseconds=int(value))
    except OverflowError as e:
        raise ValueError(f"无效的时间戳: {value}") from e


class BatchStatus(str, Enum):
    """剧本批次状态"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "error"


class ProductionMode(str, Enum):
    """创作模式：男频 / 女频"""

    MALE = "male"
    FEMALE = "female"

    @property
    def label(self) -> str:
        return "男频" if self is ProductionMode.MALE else "女频"


class Screen(str, Enum):
    """当前界面"""

    MANAGEMENT = "management"
    KNOWLEDGE_BASE = "knowledge_base"
    WORKSPACE = "workspace"


# 各类别参考资料对应的选择字段
SELECTION_FIELDS = {
    DocumentRole.PRIMARY_SOURCE: "selected_primary_source_id",
    DocumentRole.LAYOUT_TEMPLATE: "selected_layout_template_id",
    DocumentRole.STYLE_TEMPLATE: "selected_style_template_id",
}


@dataclass(frozen=True)
class GenerationBatch:
    """剧本批次：sequence_index 从 1 开始，第 k 批覆盖第 (k-1)*W+1 至 k*W 集"""

    id: str
    sequence_index: int
    content: str
    status: BatchStatus = BatchStatus.COMPLETED

    @classmethod
    def completed(cls, sequence_index: int, content: str) -> "GenerationBatch":
        return cls(
            id=new_id(),
            sequence_index=sequence_index,
            content=content,
            status=BatchStatus.COMPLETED,
        )

    @property
    def is_completed(self) -> bool:
        return self.status is BatchStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "batchIndex": self.sequence_index,
            "episodes": self.content,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GenerationBatch":
        sequence_index = int(data["batchIndex"])
        if sequence_index < 1:
            raise ValueError(f"无效的批次序号: {sequence_index}")
        return cls(
            id=str(data.get("id") or new_id()),
            sequence_index=sequence_index,
            content=data.get("episodes", "") or "",
            status=BatchStatus(data.get("status", BatchStatus.COMPLETED.value)),
        )


def _sorted_batches(batches) -> tuple[GenerationBatch, ...]:
    """按序号去重（后出现者覆盖先出现者）并升序排列"""
    by_index: dict[int, GenerationBatch] = {}
    for batch in batches:
        by_index[batch.sequence_index] = batch
    return tuple(by_index[idx] for idx in sorted(by_index))


@dataclass(frozen=True)
class Project:
    """作品模型"""

    id: str
    name: str
    created_at: datetime
    reference_documents: tuple[ReferenceDocument, ...] = ()
    outline: str = ""
    batches: tuple[GenerationBatch, ...] = ()
    highest_completed_index: int = 0
    production_mode: ProductionMode = ProductionMode.MALE
    selected_primary_source_id: str | None = None
    selected_layout_template_id: str | None = None
    selected_style_template_id: str | None = None

    @classmethod
    def create(cls, name: str) -> "Project":
        """新建空作品"""
        return cls(id=new_id(), name=name, created_at=now_utc())

    # ---- 参考资料 ----

    def document(self, document_id: str | None) -> ReferenceDocument | None:
        if not document_id:
            return None
        for doc in self.reference_documents:
            if doc.id == document_id:
                return doc
        return None

    def documents_by_role(self, role: DocumentRole) -> tuple[ReferenceDocument, ...]:
        return tuple(doc for doc in self.reference_documents if doc.role is role)

    def selected_id(self, role: DocumentRole) -> str | None:
        return getattr(self, SELECTION_FIELDS[role])

    def selected_document(self, role: DocumentRole) -> ReferenceDocument | None:
        """解析指定类别的选择；指向不存在或类别不符的资料时视为未选择"""
        doc = self.document(self.selected_id(role))
        if doc is None or doc.role is not role:
            return None
        return doc

    def selected_text(self, role: DocumentRole) -> str:
        doc = self.selected_document(role)
        return doc.text_content if doc else ""

    def with_document(self, document: ReferenceDocument) -> "Project":
        return replace(self, reference_documents=self.reference_documents + (document,))

    def without_document(self, document_id: str) -> "Project":
        """删除参考资料，并清除指向它的选择"""
        changes: dict[str, Any] = {
            "reference_documents": tuple(
                doc for doc in self.reference_documents if doc.id != document_id
            )
        }
        for field_name in SELECTION_FIELDS.values():
            if getattr(self, field_name) == document_id:
                changes[field_name] = None
        return replace(self, **changes)

    def with_selection(self, role: DocumentRole, document_id: str | None) -> "Project":
        return replace(self, **{SELECTION_FIELDS[role]: document_id})

    def normalized_selections(self) -> "Project":
        """清除无法解析的选择"""
        changes = {}
        for role, field_name in SELECTION_FIELDS.items():
            if getattr(self, field_name) and self.selected_document(role) is None:
                logger.warning(f"作品 {self.id} 的{role.label}指向无效，已清除")
                changes[field_name] = None
        return replace(self, **changes) if changes else self

    # ---- 剧本批次 ----

    def batch_at(self, sequence_index: int) -> GenerationBatch | None:
        for batch in self.batches:
            if batch.sequence_index == sequence_index:
                return batch
        return None

    def completed_batches(self) -> tuple[GenerationBatch, ...]:
        """所有已完成批次，按序号升序"""
        return tuple(
            batch
            for batch in sorted(self.batches, key=lambda b: b.sequence_index)
            if batch.is_completed
        )

    def with_batch(self, batch: GenerationBatch) -> "Project":
        """写入批次：同序号的旧批次被替换，不会追加重复项"""
        batches = _sorted_batches(self.batches + (batch,))
        highest = self.highest_completed_index
        if batch.is_completed:
            highest = max(highest, batch.sequence_index)
        return replace(self, batches=batches, highest_completed_index=highest)

    @property
    def next_sequence_index(self) -> int:
        return self.highest_completed_index + 1

    # ---- 序列化 ----

    def to_dict(self) -> dict[str, Any]:
        """转换为字典格式（用于JSON序列化）"""
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": datetime_to_millis(self.created_at),
            "files": [doc.to_dict() for doc in self.reference_documents],
            "outline": self.outline,
            "scripts": [batch.to_dict() for batch in self.batches],
            "currentBatch": self.highest_completed_index,
            "mode": self.production_mode.value,
            "selectedOriginalId": self.selected_primary_source_id,
            "selectedLayoutId": self.selected_layout_template_id,
            "selectedStyleId": self.selected_style_template_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        """从字典创建实例，并修复可推导的约束"""
        created_at = data.get("createdAt")
        if isinstance(created_at, str):
            created = datetime.fromisoformat(created_at)
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
        elif created_at is None:
            created = now_utc()
        else:
            created = millis_to_datetime(created_at)

        batches = _sorted_batches(GenerationBatch.from_dict(b) for b in data.get("scripts") or [])
        highest_completed = max(
            (b.sequence_index for b in batches if b.is_completed), default=0
        )

        project = cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            created_at=created,
            reference_documents=tuple(
                ReferenceDocument.from_dict(d) for d in data.get("files") or []
            ),
            outline=data.get("outline", "") or "",
            batches=batches,
            highest_completed_index=max(int(data.get("currentBatch") or 0), highest_completed),
            production_mode=ProductionMode(data.get("mode") or ProductionMode.MALE.value),
            selected_primary_source_id=data.get("selectedOriginalId") or None,
            selected_layout_template_id=data.get("selectedLayoutId") or None,
            selected_style_template_id=data.get("selectedStyleId") or None,
        )
        return project.normalized_selections()


class _Clear:
    """ProjectUpdate 中表示“清除该选择”的标记"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CLEAR"


CLEAR = _Clear()


@dataclass(frozen=True)
class ProjectUpdate:
    """作品的浅合并更新描述：None 表示不修改，CLEAR 表示清除选择"""

    name: str | None = None
    outline: str | None = None
    reference_documents: tuple[ReferenceDocument, ...] | None = None
    batches: tuple[GenerationBatch, ...] | None = None
    highest_completed_index: int | None = None
    production_mode: ProductionMode | None = None
    selected_primary_source_id: str | _Clear | None = None
    selected_layout_template_id: str | _Clear | None = None
    selected_style_template_id: str | _Clear | None = None

    def apply(self, project: Project) -> Project:
        changes: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value is None:
                continue
            if value is CLEAR:
                value = None
            elif name == "reference_documents":
                value = tuple(value)
            elif name == "batches":
                value = _sorted_batches(value)
            elif name == "production_mode":
                value = ProductionMode(value)
            changes[name] = value
        if not changes:
            return project
        return replace(project, **changes).normalized_selections()


@dataclass(frozen=True)
class ApplicationState:
    """应用状态：持久化的最小单位"""

    projects: tuple[Project, ...] = ()
    active_project_id: str | None = None
    current_screen: Screen = Screen.MANAGEMENT

    def project(self, project_id: str | None) -> Project | None:
        if not project_id:
            return None
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    @property
    def active_project(self) -> Project | None:
        """当前作品；指向不存在的作品时视为没有当前作品"""
        return self.project(self.active_project_id)

    def with_project(self, project: Project) -> "ApplicationState":
        """替换同 id 的作品；不存在时追加"""
        if self.project(project.id) is None:
            return replace(self, projects=self.projects + (project,))
        return replace(
            self,
            projects=tuple(project if p.id == project.id else p for p in self.projects),
        )

    def without_project(self, project_id: str) -> "ApplicationState":
        active = self.active_project_id
        screen = self.current_screen
        if active == project_id:
            active = None
            screen = Screen.MANAGEMENT
        return replace(
            self,
            projects=tuple(p for p in self.projects if p.id != project_id),
            active_project_id=active,
            current_screen=screen,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "projects": [project.to_dict() for project in self.projects],
            "currentProjectId": self.active_project_id,
            "currentView": self.current_screen.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ApplicationState":
        if not isinstance(data, dict):
            raise TypeError(f"应用状态必须是对象，实际为 {type(data).__name__}")
        raw_projects = data.get("projects") or []
        if not isinstance(raw_projects, list):
            raise TypeError("projects 必须是列表")

        projects: dict[str, Project] = {}
        for raw in raw_projects:
            project = Project.from_dict(raw)
            projects[project.id] = project

        state = cls(
            projects=tuple(projects.values()),
            active_project_id=data.get("currentProjectId") or None,
            current_screen=Screen(data.get("currentView") or Screen.MANAGEMENT.value),
        )
        if state.active_project_id and state.active_project is None:
            logger.warning(f"当前作品指向无效: {state.active_project_id}，已清除")
            state = replace(state, active_project_id=None)
        if state.active_project is None and state.current_screen is not Screen.MANAGEMENT:
            state = replace(state, current_screen=Screen.MANAGEMENT)
        return state


__all__ = [
    "ApplicationState",
    "BatchStatus",
    "CLEAR",
    "GenerationBatch",
    "ProductionMode",
    "Project",
    "ProjectUpdate",
    "SELECTION_FIELDS",
    "Screen",
    "now_utc",
    "datetime_to_millis",
    "millis_to_datetime",
]
