"""
文件服务模块
参考资料的读取解码，以及大纲、剧本的导出
"""

import logging
import mimetypes
from pathlib import Path

from config import GenerationConfig, get_generation_config
from exceptions import EncodingError
from models import GenerationBatch, Project
from services.window_calculator import episode_range
from utils import atomic_write_text, sanitize_filename
from validators import (
    MAX_UPLOAD_SIZE_MB,
    TEXT_EXTENSIONS,
    validate_file_path,
    validate_output_dir,
    validate_size,
)

logger = logging.getLogger(__name__)

DEFAULT_ENCODINGS = ["utf-8", "gbk", "gb18030", "big5", "utf-16"]


class FileService:
    """文件服务类"""

    def __init__(self, config: GenerationConfig | None = None, encodings: list[str] | None = None):
        self.config = config or get_generation_config()
        self.encodings = list(encodings or DEFAULT_ENCODINGS)

    # ---- 读取 ----

    def decode_bytes(self, raw: bytes) -> tuple[str, str]:
        """
        按编码列表依次尝试解码

        Returns:
            Tuple[str, str]: (文本内容, 实际使用的编码)

        Raises:
            EncodingError: 所有编码都失败
        """
        if raw.startswith(b"\xef\xbb\xbf"):
            return raw[3:].decode("utf-8"), "utf-8-sig"

        for encoding in self.encodings:
            try:
                return raw.decode(encoding), encoding
            except UnicodeDecodeError:
                logger.debug(f"编码 {encoding} 失败")
                continue

        raise EncodingError(f"无法解码文本，已尝试编码: {', '.join(self.encodings)}")

    def read_text_file(self, file_path: str | Path) -> tuple[str, str]:
        """
        读取文本文件，自动检测编码

        Raises:
            FileValidationError: 路径、扩展名或大小不合法
            EncodingError: 所有编码都失败
        """
        path = validate_file_path(
            file_path, allowed_extensions=TEXT_EXTENSIONS, max_size_mb=MAX_UPLOAD_SIZE_MB
        )
        content, encoding = self.decode_bytes(path.read_bytes())
        logger.info(f"成功读取文件: {path}，使用编码: {encoding}")
        return content, encoding

    def ingest(self, file_path: str | Path) -> tuple[str, str]:
        """读取本地文件作为参考资料，返回 (文本内容, 媒体类型)"""
        content, _ = self.read_text_file(file_path)
        return content, self.guess_media_type(Path(file_path).name)

    def decode_upload(self, filename: str, raw: bytes) -> str:
        """解码上传内容；返回的文本原样作为参考资料，不再做结构校验"""
        validate_size(len(raw), MAX_UPLOAD_SIZE_MB)
        content, encoding = self.decode_bytes(raw)
        logger.debug(f"上传文件 {filename} 使用编码: {encoding}")
        return content

    @staticmethod
    def guess_media_type(filename: str) -> str:
        media_type, _ = mimetypes.guess_type(filename)
        return media_type or "text/plain"

    # ---- 导出 ----

    def outline_filename(self, project: Project) -> str:
        return sanitize_filename(f"{project.name}_大纲.txt")

    def batch_filename(self, project: Project, batch: GenerationBatch) -> str:
        episodes = episode_range(batch.sequence_index, self.config.episodes_per_batch)
        return sanitize_filename(f"{project.name}_脚本_{episodes.start}-{episodes.end}集.txt")

    def export_text(self, content: str, filename: str) -> Path:
        """把文本写入导出目录，返回文件路径"""
        output_dir = validate_output_dir(self.config.export_dir)
        target = output_dir / sanitize_filename(filename)
        atomic_write_text(target, content)
        logger.info(f"已导出: {target}")
        return target

    def export_outline(self, project: Project) -> Path:
        return self.export_text(project.outline, self.outline_filename(project))

    def export_batch(self, project: Project, batch: GenerationBatch) -> Path:
        return self.export_text(batch.content, self.batch_filename(project, batch))
