"""
输入验证模块
提供各种输入验证功能，确保安全性
"""

import os
from pathlib import Path

from exceptions import FileValidationError

TEXT_EXTENSIONS = [".txt", ".md", ".text"]

MAX_UPLOAD_SIZE_MB = 100


def validate_file_path(
    file_path: str | Path,
    allowed_extensions: list | None = None,
    max_size_mb: int | None = None,
) -> Path:
    """验证文件路径的安全性

    Args:
        file_path: 文件路径
        allowed_extensions: 允许的文件扩展名列表，如['.txt', '.md']
        max_size_mb: 最大文件大小（MB）

    Returns:
        Path: 验证后的Path对象

    Raises:
        FileValidationError: 文件验证失败
    """
    if isinstance(file_path, Path):
        file_path = str(file_path)

    if not file_path or not isinstance(file_path, str):
        raise FileValidationError("文件路径不能为空")

    # 检查路径遍历攻击
    normalized_path = os.path.normpath(file_path)
    if ".." in normalized_path.split(os.sep):
        raise FileValidationError("检测到不安全的路径遍历")

    path_obj = Path(file_path)

    if not path_obj.exists():
        raise FileValidationError(f"文件不存在: {file_path}")

    if not path_obj.is_file():
        raise FileValidationError(f"路径不是文件: {file_path}")

    if allowed_extensions:
        validate_extension(path_obj.name, allowed_extensions)

    if max_size_mb is not None:
        validate_size(path_obj.stat().st_size, max_size_mb)

    return path_obj


def validate_extension(filename: str, allowed_extensions: list | None = None) -> str:
    """检查扩展名，返回小写扩展名"""
    allowed_extensions = allowed_extensions or TEXT_EXTENSIONS
    ext = Path(filename or "").suffix.lower()
    if ext not in allowed_extensions:
        raise FileValidationError(
            f"不支持的文件扩展名: {ext or '(无)'}. 支持的扩展名: {', '.join(allowed_extensions)}"
        )
    return ext


def validate_size(size_bytes: int, max_size_mb: int = MAX_UPLOAD_SIZE_MB) -> None:
    size_mb = size_bytes / (1024 * 1024)
    if size_mb > max_size_mb:
        raise FileValidationError(f"文件过大: {size_mb:.2f}MB. 最大允许: {max_size_mb}MB")


def validate_output_dir(output_dir: str | Path) -> Path:
    """验证并创建输出目录

    Args:
        output_dir: 输出目录路径

    Returns:
        Path: 验证后的Path对象
    """
    if isinstance(output_dir, Path):
        output_dir = str(output_dir)

    if not output_dir or not isinstance(output_dir, str):
        raise FileValidationError("输出目录路径不能为空")

    normalized_path = os.path.normpath(output_dir)
    if ".." in normalized_path.split(os.sep):
        raise FileValidationError("检测到不安全的路径遍历")

    path_obj = Path(output_dir)

    try:
        path_obj.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise FileValidationError(f"没有权限创建目录: {output_dir}") from e
    except OSError as e:
        raise FileValidationError(f"创建目录失败: {output_dir}, 错误: {str(e)}") from e

    return path_obj
