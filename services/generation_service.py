"""
剧本生成服务模块
核心业务逻辑：组装大纲/分批剧本请求，调用生成服务，并把结果写回作品存储
"""
import logging
from dataclasses import dataclass
from typing import Optional

from config import GenerationConfig, get_generation_config
from exceptions import MissingOutlineError, MissingSelectionError
from models import DocumentRole, GenerationBatch, Project
from prompts import batch_prompt, outline_prompt
from services.continuity import ContinuityContext, build_continuity
from services.llm_service import GenerationClient
from services.project_store import ProjectStore
from services.window_calculator import EpisodeRange, SourceWindow, compute_window, episode_range
from tokenizer import estimate_prompt_tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchRequest:
    """一次分批剧本请求的全部输入"""

    project_id: str
    sequence_index: int
    episodes: EpisodeRange
    window: SourceWindow
    continuity: ContinuityContext
    prompt: str


class GenerationService:
    """剧本生成服务类

    请求期间不持有作品快照的写权限：结果返回后重新读取最新的作品，
    只替换大纲或对应序号的批次，其余字段保持请求期间的修改。
    """

    def __init__(self,
                 store: ProjectStore,
                 client: GenerationClient,
                 config: Optional[GenerationConfig] = None):
        self.store = store
        self.client = client
        self.config = config or get_generation_config()

    # ---- 序号 ----

    @staticmethod
    def next_sequence_index(project: Project) -> int:
        """默认“继续生成”的批次序号：最高完成序号 + 1"""
        return project.next_sequence_index

    def episode_range(self, sequence_index: int) -> EpisodeRange:
        return episode_range(sequence_index, self.config.episodes_per_batch)

    def batch_episode_label(self, sequence_index: int) -> str:
        return self.episode_range(sequence_index).label

    # ---- 前置检查 ----

    @staticmethod
    def _require_primary_source(project: Project) -> str:
        document = project.selected_document(DocumentRole.PRIMARY_SOURCE)
        if document is None:
            raise MissingSelectionError(DocumentRole.PRIMARY_SOURCE.label)
        return document.text_content

    @staticmethod
    def _log_prompt_size(prompt: str) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"提示词 {len(prompt)} 字，约 {estimate_prompt_tokens(prompt)} tokens")

    # ---- 大纲 ----

    def build_outline_prompt(self, project: Project) -> str:
        source = self._require_primary_source(project)
        return outline_prompt(
            source[:self.config.outline_source_limit],
            project.selected_text(DocumentRole.LAYOUT_TEMPLATE),
            project.selected_text(DocumentRole.STYLE_TEMPLATE),
        )

    async def request_outline_generation(self, project_id: str) -> Project:
        """
        生成并整体替换大纲

        Raises:
            MissingSelectionError: 未选择原著
            GenerationInProgressError: 该作品已有请求在进行中
            GenerationRequestError / MalformedResponseError: 生成服务失败，大纲保持不变
        """
        project = self.store.get_project(project_id)
        prompt = self.build_outline_prompt(project)

        with self.store.generation_slot(project_id):
            logger.info(f"开始生成大纲: {project.name}")
            self._log_prompt_size(prompt)
            response = await self.client.generate(
                prompt,
                self.config.temperature,
                label=f"{project.name} 大纲",
            )
            updated = self.store.record_outline(project_id, response.content)

        logger.info(f"大纲生成完成: {project.name} ({len(response.content)} 字)")
        return updated

    # ---- 分批剧本 ----

    def build_batch_request(self, project: Project, sequence_index: int) -> BatchRequest:
        """计算集数范围、原著窗口与承接上下文，组装请求"""
        if sequence_index < 1:
            raise ValueError(f"批次序号必须从1开始: {sequence_index}")
        if not project.outline:
            raise MissingOutlineError()
        source = self._require_primary_source(project)

        episodes = self.episode_range(sequence_index)
        window = compute_window(
            len(source),
            episodes.start,
            self.config.assumed_total_episodes,
            self.config.window_size,
            self.config.window_backtrack,
        )
        continuity = build_continuity(
            project.batches, sequence_index, self.config.continuity_chars
        )

        prompt = batch_prompt(
            start_episode=episodes.start,
            end_episode=episodes.end,
            mode=project.production_mode,
            phase_plan=project.outline,
            source_window=window.slice(source),
            previous_context=continuity.tail(self.config.prompt_context_chars),
            accumulated_summary=continuity.summary_or_opening,
            layout_text=project.selected_text(DocumentRole.LAYOUT_TEMPLATE),
            style_text=project.selected_text(DocumentRole.STYLE_TEMPLATE),
        )
        return BatchRequest(
            project_id=project.id,
            sequence_index=sequence_index,
            episodes=episodes,
            window=window,
            continuity=continuity,
            prompt=prompt,
        )

    async def request_batch_generation(self,
                                       project_id: str,
                                       sequence_index: Optional[int] = None) -> GenerationBatch:
        """
        生成第 sequence_index 批剧本（缺省为下一批），成功后替换该序号的旧批次

        Raises:
            MissingOutlineError: 尚未生成大纲
            MissingSelectionError: 未选择原著
            GenerationInProgressError: 该作品已有请求在进行中
            GenerationRequestError / MalformedResponseError: 生成服务失败，旧批次保持不变
        """
        project = self.store.get_project(project_id)
        if sequence_index is None:
            sequence_index = self.next_sequence_index(project)
        request = self.build_batch_request(project, sequence_index)

        with self.store.generation_slot(project_id):
            action = "重新生成" if project.batch_at(sequence_index) else "生成"
            logger.info(
                f"开始{action}第{sequence_index}批（{request.episodes.label}）: {project.name}，"
                f"原著窗口 [{request.window.start}, {request.window.end})"
            )
            self._log_prompt_size(request.prompt)
            response = await self.client.generate(
                request.prompt,
                self.config.temperature,
                label=f"{project.name} 第{sequence_index}批",
            )
            batch = GenerationBatch.completed(sequence_index, response.content)
            updated = self.store.record_batch(project_id, batch)

        logger.info(
            f"第{sequence_index}批生成完成: {project.name}，"
            f"最高完成序号 {updated.highest_completed_index}"
        )
        return batch
