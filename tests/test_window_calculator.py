"""
测试集数范围与原著窗口计算
"""

import pytest

from services.window_calculator import (
    EpisodeRange,
    SourceWindow,
    compute_window,
    episode_range,
    source_window_text,
)


class TestEpisodeRange:
    """测试批次集数范围"""

    def test_first_batch(self):
        assert episode_range(1, 3) == EpisodeRange(1, 3)

    def test_label_and_str(self):
        episodes = episode_range(4, 3)
        assert episodes == EpisodeRange(10, 12)
        assert episodes.label == "第 10 - 12 集"
        assert str(episodes) == "10-12"

    @pytest.mark.parametrize("width", [1, 2, 3, 5])
    def test_adjacent_batches_are_contiguous(self, width):
        """相邻批次首尾相接，没有空缺也没有重叠"""
        for k in range(1, 40):
            current = episode_range(k, width)
            following = episode_range(k + 1, width)
            assert current.start == (k - 1) * width + 1
            assert current.end == k * width
            assert following.start == current.end + 1

    @pytest.mark.parametrize("sequence_index, width", [(0, 3), (-1, 3), (1, 0)])
    def test_invalid_arguments(self, sequence_index, width):
        with pytest.raises(ValueError):
            episode_range(sequence_index, width)


class TestComputeWindow:
    """测试原著窗口"""

    def test_first_episode_starts_at_zero(self):
        window = compute_window(1_000_000, 1, 80, 150000, 20000)
        assert window == SourceWindow(0, 150000)
        assert window.length == 150000

    def test_progress_ratio_with_backtrack(self):
        # floor(800000 * 40 / 80) - 20000
        window = compute_window(800_000, 41, 80, 150000, 20000)
        assert window.start == 380000
        assert window.end == 530000

    def test_short_source_is_clamped(self):
        window = compute_window(1000, 1, 80, 150000, 20000)
        assert window == SourceWindow(0, 1000)

    def test_episode_beyond_assumed_total(self):
        """超出假定总集数时窗口仍落在原著范围内"""
        window = compute_window(10000, 200, 80, 150000, 0)
        assert window.start == 10000
        assert window.end == 10000
        assert window.slice("x" * 10000) == ""

    def test_empty_source(self):
        assert compute_window(0, 10, 80, 150000, 20000) == SourceWindow(0, 0)

    @pytest.mark.parametrize("length", [0, 1, 999, 150000, 1_234_567])
    @pytest.mark.parametrize("episode", [1, 2, 40, 79, 80, 81, 500])
    @pytest.mark.parametrize("backtrack", [0, 20000, 10_000_000])
    def test_bounds(self, length, episode, backtrack):
        window = compute_window(length, episode, 80, 150000, backtrack)
        assert 0 <= window.start <= window.end <= length

    @pytest.mark.parametrize("episode, total", [(0, 80), (1, 0)])
    def test_invalid_arguments(self, episode, total):
        with pytest.raises(ValueError):
            compute_window(1000, episode, total, 150000, 20000)

    def test_source_window_text(self):
        text = "".join(str(i % 10) for i in range(100))
        assert source_window_text(text, 51, 100, 10, 5) == text[45:55]
