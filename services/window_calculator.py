"""
原著窗口计算模块

根据批次的起始集数在原著中定位一段有界的文本窗口。定位按假定总集数
估算进度比例，再向前回退一段距离，使窗口与上一批次的结尾素材重叠。
假定总集数与实际产量不符时窗口会漂移，这是可接受的近似。
"""

import logging
import math
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EpisodeRange:
    """批次覆盖的集数范围（闭区间）"""

    start: int
    end: int

    @property
    def label(self) -> str:
        return f"第 {self.start} - {self.end} 集"

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class SourceWindow:
    """原著中的半开区间 [start, end)"""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def slice(self, text: str) -> str:
        return text[self.start:self.end]


def episode_range(sequence_index: int, episodes_per_batch: int) -> EpisodeRange:
    """第 k 批覆盖 [(k-1)*W+1, k*W]，相邻批次首尾相接"""
    if sequence_index < 1:
        raise ValueError(f"批次序号必须从1开始: {sequence_index}")
    if episodes_per_batch < 1:
        raise ValueError(f"每批集数必须大于0: {episodes_per_batch}")
    start = (sequence_index - 1) * episodes_per_batch + 1
    return EpisodeRange(start=start, end=sequence_index * episodes_per_batch)


def compute_window(
    source_length: int,
    episode: int,
    total_episodes: int,
    window_size: int,
    backtrack: int,
) -> SourceWindow:
    """
    计算原著窗口

    Args:
        source_length: 原著总长度 L
        episode: 本批次的起始集数 e（从1开始）
        total_episodes: 假定总集数 T
        window_size: 窗口长度
        backtrack: 向前回退的字符数

    Returns:
        SourceWindow: 满足 0 <= start <= end <= L
    """
    if episode < 1:
        raise ValueError(f"集数必须从1开始: {episode}")
    if total_episodes < 1:
        raise ValueError(f"假定总集数必须大于0: {total_episodes}")

    length = max(0, source_length)
    progress_ratio = (episode - 1) / total_episodes
    raw_start = math.floor(length * progress_ratio) - max(0, backtrack)
    # 超出假定总集数时不做上界约束，这里只保证落在原著范围内
    start = min(max(0, raw_start), length)
    end = min(length, start + max(0, window_size))

    logger.debug(
        f"原著窗口: 第{episode}集, 进度 {progress_ratio:.3f}, 区间 [{start}, {end}) / {length}"
    )
    return SourceWindow(start=start, end=end)


def source_window_text(
    source_text: str,
    episode: int,
    total_episodes: int,
    window_size: int,
    backtrack: int,
) -> str:
    """返回本批次可见的原著片段"""
    window = compute_window(len(source_text), episode, total_episodes, window_size, backtrack)
    return window.slice(source_text)
