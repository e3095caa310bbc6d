"""
服务层模块
包含作品存储、生成流程与文件处理等业务逻辑
"""

from .file_service import FileService
from .generation_service import GenerationService
from .llm_service import (
    GenerationClient,
    HttpGenerationClient,
    OpenAIGenerationClient,
    create_generation_client,
)
from .project_store import ProjectStore
from .state_storage import InMemoryStorage, JsonFileStorage

__all__ = [
    "FileService",
    "GenerationClient",
    "GenerationService",
    "HttpGenerationClient",
    "InMemoryStorage",
    "JsonFileStorage",
    "OpenAIGenerationClient",
    "ProjectStore",
    "create_generation_client",
]
