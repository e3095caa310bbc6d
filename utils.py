"""
通用工具模块
包含日志配置、原子文件写入等实用功能
"""
import logging
import os
import re
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

# 日志配置函数
_logging_configured = False


def setup_logging(level=None, log_file='script_workshop.log'):
    """统一配置日志系统，避免重复配置

    Args:
        level: 日志级别，默认从环境变量 LOG_LEVEL 读取，若未设置则使用 INFO
        log_file: 日志文件路径，为 None 时只输出到控制台
    """
    global _logging_configured
    if _logging_configured:
        return

    # 支持通过环境变量控制日志级别
    if level is None:
        level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
        level = getattr(logging, level_str, logging.INFO)

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file, encoding='utf-8'))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True  # 强制重新配置，即使已经配置过
    )
    _logging_configured = True


logger = logging.getLogger(__name__)


def atomic_write_text(file_path: Union[str, Path],
                      content: str,
                      backup: bool = False,
                      encoding: str = 'utf-8') -> None:
    """原子性写入文本文件

    Args:
        file_path: 目标文件路径
        content: 文件内容
        backup: 是否创建备份文件
        encoding: 文件编码
    """
    file_path = Path(file_path)

    # 确保目录存在
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # 创建备份
    if backup and file_path.exists():
        backup_path = file_path.with_suffix(f'.{datetime.now().strftime("%Y%m%d_%H%M%S")}.bak')
        try:
            shutil.copy2(file_path, backup_path)
            logger.debug(f"创建备份文件: {backup_path}")
        except OSError as e:
            logger.warning(f"创建备份文件失败: {e}")

    # 写入临时文件
    temp_fd, temp_path = tempfile.mkstemp(
        suffix='.tmp',
        prefix=file_path.name + '_',
        dir=file_path.parent
    )

    try:
        with os.fdopen(temp_fd, 'w', encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())  # 强制写入磁盘

        # 原子性重命名
        os.replace(temp_path, file_path)
        logger.debug(f"原子性写入成功: {file_path}")

    except Exception as e:
        # 清理临时文件
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        logger.error(f"写入文件失败: {file_path}, 错误: {e}")
        raise


def backup_corrupt_file(file_path: Union[str, Path]) -> Optional[Path]:
    """把损坏的文件复制一份 .corrupt_<时间戳>，返回备份路径"""
    file_path = Path(file_path)
    if not file_path.exists():
        return None

    backup_path = file_path.with_suffix(f'.corrupt_{datetime.now().strftime("%Y%m%d_%H%M%S")}')
    try:
        shutil.copy2(file_path, backup_path)
        logger.info(f"损坏的文件已备份: {backup_path}")
        return backup_path
    except OSError as backup_error:
        logger.warning(f"备份损坏文件失败: {backup_error}")
        return None


_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def sanitize_filename(filename: str, replacement: str = "_") -> str:
    """去掉文件名中的路径分隔符和非法字符"""
    cleaned = _UNSAFE_FILENAME_CHARS.sub(replacement, filename).strip().strip(".")
    return cleaned or "untitled"
