"""
作品存储服务模块
持有唯一的应用状态快照，所有修改都生成新快照并立即整体持久化
"""
import functools
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, Optional

from config import GenerationConfig, get_generation_config
from exceptions import (
    DocumentNotFoundError,
    GenerationInProgressError,
    PersistenceReadError,
    ProjectNotFoundError,
)
from models import (
    ApplicationState,
    DocumentRole,
    GenerationBatch,
    ProductionMode,
    Project,
    ProjectUpdate,
    ReferenceDocument,
    Screen,
)
from services.state_storage import JsonFileStorage, StateStorage, decode_state, encode_state

logger = logging.getLogger(__name__)


def _synchronized(method):
    """读取快照、生成新快照与提交作为一个整体执行"""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


class ProjectStore:
    """作品存储服务类

    读取总能看到最近一次写入（同进程内同步状态）。修改在锁内完成，
    线程池中的请求与事件循环上的生成结果写回不会互相覆盖。
    生成中标记只保存在内存中，不属于持久化模型。
    """

    def __init__(self, storage: StateStorage, storage_key: str, state: Optional[ApplicationState] = None):
        self.storage = storage
        self.storage_key = storage_key
        self._lock = threading.RLock()
        self._in_flight: set[str] = set()
        self._state = state if state is not None else self.load()

    @classmethod
    def from_config(cls, config: Optional[GenerationConfig] = None) -> "ProjectStore":
        """按配置创建基于文件的存储"""
        config = config or get_generation_config()
        return cls(JsonFileStorage(config.data_dir), config.storage_key)

    # ---- 持久化 ----

    def load(self) -> ApplicationState:
        """启动时读取一次；无法解析的存档按“无历史状态”处理"""
        try:
            raw = self.storage.get(self.storage_key)
            if raw is None:
                logger.info("未找到已保存的状态，使用空状态")
                return ApplicationState()
            state = decode_state(raw)
        except PersistenceReadError as e:
            logger.warning(f"已保存的状态无法解析，使用空状态: {e.message} ({e.details})")
            self.storage.quarantine(self.storage_key)
            return ApplicationState()

        logger.info(f"已加载 {len(state.projects)} 个作品")
        return state

    def _commit(self, new_state: ApplicationState) -> ApplicationState:
        self._state = new_state
        try:
            self.storage.set(self.storage_key, encode_state(new_state))
        except Exception as e:
            logger.error(f"保存状态失败: {e}")
            raise
        return new_state

    @property
    def state(self) -> ApplicationState:
        return self._state

    # ---- 查询 ----

    def list_projects(self) -> tuple[Project, ...]:
        return self._state.projects

    def get_project(self, project_id: str) -> Project:
        project = self._state.project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    def active_project(self) -> Optional[Project]:
        return self._state.active_project

    # ---- 作品 ----

    @_synchronized
    def create_project(self, name: str) -> Project:
        """新建作品并设为当前作品，进入参考资料界面"""
        name = (name or "").strip()
        if not name:
            raise ValueError("作品名称不能为空")

        project = Project.create(name)
        state = self._state.with_project(project)
        self._commit(
            replace(state, active_project_id=project.id, current_screen=Screen.KNOWLEDGE_BASE)
        )
        logger.info(f"已创建作品: {project.name} ({project.id})")
        return project

    @_synchronized
    def delete_project(self, project_id: str) -> ApplicationState:
        """删除作品；删除当前作品时清除当前指向（确认由调用层负责）"""
        project = self.get_project(project_id)
        state = self._commit(self._state.without_project(project_id))
        self._in_flight.discard(project_id)
        logger.info(f"已删除作品: {project.name} ({project_id})")
        return state

    @_synchronized
    def select_project(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        self._commit(
            replace(self._state, active_project_id=project_id, current_screen=Screen.KNOWLEDGE_BASE)
        )
        return project

    @_synchronized
    def update_project(self, project_id: str, update: ProjectUpdate) -> Project:
        """浅合并更新：只修改 update 中指定的字段"""
        project = update.apply(self.get_project(project_id))
        self._commit(self._state.with_project(project))
        return project

    def record_outline(self, project_id: str, outline: str) -> Project:
        """整体替换大纲"""
        return self.update_project(project_id, ProjectUpdate(outline=outline))

    @_synchronized
    def record_batch(self, project_id: str, batch: GenerationBatch) -> Project:
        """写入批次并推进最高完成序号"""
        project = self.get_project(project_id).with_batch(batch)
        self._commit(self._state.with_project(project))
        return project

    def set_production_mode(self, project_id: str, mode: ProductionMode) -> Project:
        return self.update_project(project_id, ProjectUpdate(production_mode=ProductionMode(mode)))

    # ---- 参考资料 ----

    @_synchronized
    def add_reference_document(self,
                               project_id: str,
                               name: str,
                               role: DocumentRole,
                               text_content: str,
                               media_type: str = "text/plain") -> ReferenceDocument:
        document = ReferenceDocument.create(name, role, text_content, media_type)
        project = self.get_project(project_id).with_document(document)
        self._commit(self._state.with_project(project))
        logger.info(f"作品 {project_id} 新增{document.role.label}: {name} ({document.length} 字)")
        return document

    @_synchronized
    def remove_reference_document(self, project_id: str, document_id: str) -> Project:
        project = self.get_project(project_id)
        if project.document(document_id) is None:
            raise DocumentNotFoundError(document_id)
        project = project.without_document(document_id)
        self._commit(self._state.with_project(project))
        return project

    @_synchronized
    def select_reference(self, project_id: str, role: DocumentRole, document_id: Optional[str]) -> Project:
        """设置或清除某类参考资料的指向"""
        role = DocumentRole(role)
        project = self.get_project(project_id)
        if document_id:
            document = project.document(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            if document.role is not role:
                raise DocumentNotFoundError(
                    document_id, details=f"资料类别为{document.role.label}，不能作为{role.label}"
                )
        project = project.with_selection(role, document_id or None)
        self._commit(self._state.with_project(project))
        return project

    # ---- 界面导航 ----

    @_synchronized
    def navigate(self, screen: Screen) -> ApplicationState:
        screen = Screen(screen)
        project = self._state.active_project
        if screen is not Screen.MANAGEMENT and project is None:
            raise ValueError("请先选择作品")
        if screen is Screen.WORKSPACE and not project.documents_by_role(DocumentRole.PRIMARY_SOURCE):
            raise ValueError("请先上传原著小说")
        return self._commit(replace(self._state, current_screen=screen))

    @_synchronized
    def go_back(self) -> ApplicationState:
        """工作台返回参考资料界面；参考资料界面返回作品管理并清除当前作品"""
        screen = self._state.current_screen
        if screen is Screen.WORKSPACE:
            return self._commit(replace(self._state, current_screen=Screen.KNOWLEDGE_BASE))
        if screen is Screen.KNOWLEDGE_BASE:
            return self._commit(
                replace(self._state, current_screen=Screen.MANAGEMENT, active_project_id=None)
            )
        return self._state

    # ---- 生成中标记 ----

    def is_generating(self, project_id: str) -> bool:
        return project_id in self._in_flight

    @contextmanager
    def generation_slot(self, project_id: str) -> Iterator[None]:
        """每个作品同一时间只允许一个生成请求"""
        with self._lock:
            if project_id in self._in_flight:
                logger.warning(f"作品 {project_id} 已有生成请求在进行中，拒绝新的请求")
                raise GenerationInProgressError(project_id)
            self._in_flight.add(project_id)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(project_id)
