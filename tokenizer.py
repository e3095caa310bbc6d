"""
Token计数器模块
使用tiktoken库估算提示词的token数量（仅用于日志与请求统计）
"""
import logging
from typing import Optional

import tiktoken

from exceptions import EncodingError

logger = logging.getLogger(__name__)

# 全局编码器实例
_encoder: Optional[tiktoken.Encoding] = None


def get_encoder() -> tiktoken.Encoding:
    """获取编码器实例（单例模式）"""
    global _encoder
    if _encoder is None:
        try:
            _encoder = tiktoken.get_encoding("cl100k_base")
            logger.debug("初始化tiktoken编码器: cl100k_base")
        except Exception as e:
            logger.error(f"初始化编码器失败: {e}")
            raise EncodingError(f"无法初始化token编码器: {str(e)}") from e
    return _encoder


def count_tokens(text: str) -> int:
    """
    计算文本的token数量

    Raises:
        EncodingError: 编码失败
    """
    if not isinstance(text, str):
        raise ValueError("输入必须是字符串")

    if not text:
        return 0

    try:
        return len(get_encoder().encode(text, disallowed_special=()))
    except EncodingError:
        raise
    except Exception as e:
        logger.error(f"计算token失败: {e}")
        raise EncodingError(f"无法计算token数量: {str(e)}") from e


def estimate_tokens_from_chars(char_count: int) -> int:
    """从字符数粗略估算token数（中文约2.5个字符=1个token，取保守值）"""
    return max(1, char_count // 3)


def estimate_prompt_tokens(text: str) -> int:
    """估算提示词token数；编码器不可用时退回按字符估算"""
    try:
        return count_tokens(text)
    except EncodingError:
        return estimate_tokens_from_chars(len(text))
