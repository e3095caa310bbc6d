"""
前序剧本记忆模块

为新的批次请求准备承接上下文：
- 最近剧本：按序号升序拼接所有更早的已完成批次，取末尾 N 个字符
- 累积快照：生成服务在返回文本末尾按约定标记输出的全剧剧情快照，原样转交给下一次请求

快照的提取是尽力而为的文本约定，标记缺失时快照为空，不视为错误。
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from models import GenerationBatch
from prompts import SUMMARY_MARKER

logger = logging.getLogger(__name__)

NO_PRIOR_CONTEXT = "暂无前序脚本"
STORY_OPENING = "这是故事的开篇。"

BATCH_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class ContinuityContext:
    """承接上下文"""

    recent_context: str
    accumulated_summary: str = ""
    has_prior: bool = False

    def tail(self, max_chars: int) -> str:
        """最近剧本的最后 max_chars 个字符（无前序时返回占位文本）"""
        if not self.has_prior:
            return self.recent_context
        return last_chars(self.recent_context, max_chars)

    @property
    def summary_or_opening(self) -> str:
        return self.accumulated_summary or STORY_OPENING


def last_chars(text: str, max_chars: int) -> str:
    if max_chars <= 0:
        return ""
    return text[-max_chars:] if len(text) > max_chars else text


def extract_summary(text: str | None) -> str:
    """取最后一个快照标记之后的文本；没有标记时返回空字符串"""
    if not text:
        return ""
    position = text.rfind(SUMMARY_MARKER)
    if position < 0:
        return ""
    return text[position + len(SUMMARY_MARKER):].strip().lstrip("：:").strip()


def prior_batches(
    batches: Iterable[GenerationBatch], before_index: int
) -> list[GenerationBatch]:
    """序号小于 before_index 的已完成批次，按序号升序（与完成时间无关）"""
    return sorted(
        (b for b in batches if b.is_completed and b.sequence_index < before_index),
        key=lambda b: b.sequence_index,
    )


def build_continuity(
    batches: Iterable[GenerationBatch],
    before_index: int,
    max_chars: int,
    accumulated_summary: str | None = None,
) -> ContinuityContext:
    """
    构建承接上下文

    Args:
        batches: 作品的全部批次
        before_index: 即将生成的批次序号
        max_chars: 最近剧本保留的字符数 N
        accumulated_summary: 显式提供的累积快照；为 None 时从最近一批已完成批次中提取

    Returns:
        ContinuityContext: 无前序批次时 recent_context 为占位文本
    """
    previous = prior_batches(batches, before_index)
    if not previous:
        return ContinuityContext(
            recent_context=NO_PRIOR_CONTEXT,
            accumulated_summary=accumulated_summary or "",
            has_prior=False,
        )

    joined = BATCH_SEPARATOR.join(b.content for b in previous)
    if accumulated_summary is None:
        accumulated_summary = extract_summary(previous[-1].content)
        if not accumulated_summary:
            logger.debug(f"第{previous[-1].sequence_index}批未包含累积快照标记")

    return ContinuityContext(
        recent_context=last_chars(joined, max_chars),
        accumulated_summary=accumulated_summary,
        has_prior=True,
    )
