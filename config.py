"""
配置管理模块
使用环境变量管理配置，API 密钥只从环境或 .env 文件读取
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from exceptions import APIKeyError, ConfigurationError

# 加载.env文件中的环境变量
load_dotenv()

SUPPORTED_API_PROVIDERS = ("http", "openai")

# 持久化状态使用的固定存储键
STORAGE_KEY = "anime_script_workshop_data"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} 必须是整数，当前值: {value}") from e


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} 必须是数字，当前值: {value}") from e


@dataclass
class APIConfig:
    """API配置类"""

    provider: str = field(default_factory=lambda: os.getenv("API_PROVIDER", "http").lower())
    raw_api_key: str | None = field(default_factory=lambda: os.getenv("API_KEY"))
    api_base: str = field(
        default_factory=lambda: os.getenv("API_BASE", "https://openrouter.ai/api/v1")
    )
    model_name: str = field(
        default_factory=lambda: os.getenv("MODEL_NAME", "google/gemini-3-flash-preview")
    )
    app_title: str = field(
        default_factory=lambda: os.getenv("APP_TITLE", "YuanMu AI Script Workshop")
    )
    app_referer: str | None = field(default_factory=lambda: os.getenv("APP_REFERER"))
    request_timeout: float = field(default_factory=lambda: _env_float("REQUEST_TIMEOUT", 600.0))
    use_proxy: bool = field(
        default_factory=lambda: os.getenv("USE_PROXY", "false").lower() == "true"
    )
    proxy_url: str = field(default_factory=lambda: os.getenv("PROXY_URL", "http://127.0.0.1:7897"))
    _validated: bool = field(default=False, init=False)

    def validate(self) -> None:
        """验证配置（延迟到实际使用时）"""
        if self._validated:
            return

        if self.provider not in SUPPORTED_API_PROVIDERS:
            raise ConfigurationError(
                f"不支持的API提供商: {self.provider}. "
                f"支持的提供商: {', '.join(SUPPORTED_API_PROVIDERS)}"
            )

        if self.request_timeout <= 0:
            raise ConfigurationError("REQUEST_TIMEOUT必须大于0")

        self._validated = True

    @property
    def api_key(self) -> str:
        """获取API密钥"""
        self.validate()

        key = (self.raw_api_key or "").strip()
        if not key:
            raise APIKeyError("未配置API_KEY环境变量，请在 .env 文件中填入真实的 API Key")
        if "your_" in key.lower() or key.lower().endswith("here"):
            raise APIKeyError(
                "API_KEY 看起来像是占位符，请在 .env 文件中填入真实的 API Key"
            )
        return key

    @property
    def completions_url(self) -> str:
        """聊天补全接口地址"""
        return f"{self.api_base.rstrip('/')}/chat/completions"

    @property
    def proxy(self) -> str | None:
        return self.proxy_url if self.use_proxy and self.proxy_url else None


@dataclass
class GenerationConfig:
    """生成流程配置类"""

    # 分批参数
    episodes_per_batch: int = field(default_factory=lambda: _env_int("EPISODES_PER_BATCH", 3))
    # 原著定位按此总集数估算，并非从原著实际长度推导
    assumed_total_episodes: int = field(
        default_factory=lambda: _env_int("ASSUMED_TOTAL_EPISODES", 80)
    )

    # 原著窗口
    window_size: int = field(default_factory=lambda: _env_int("SOURCE_WINDOW_SIZE", 150000))
    window_backtrack: int = field(
        default_factory=lambda: _env_int("SOURCE_WINDOW_BACKTRACK", 20000)
    )
    outline_source_limit: int = field(
        default_factory=lambda: _env_int("OUTLINE_SOURCE_LIMIT", 300000)
    )

    # 前序剧本记忆
    continuity_chars: int = field(default_factory=lambda: _env_int("CONTINUITY_CHARS", 25000))
    prompt_context_chars: int = field(
        default_factory=lambda: _env_int("PROMPT_CONTEXT_CHARS", 1500)
    )

    # 请求参数
    temperature: float = field(
        default_factory=lambda: _env_float("GENERATION_TEMPERATURE", 0.85)
    )
    max_tokens: int = field(default_factory=lambda: _env_int("MAX_OUTPUT_TOKENS", 8192))

    # 存储
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "data"))
    export_dir: str = field(default_factory=lambda: os.getenv("EXPORT_DIR", "outputs"))
    storage_key: str = field(default=STORAGE_KEY)

    def validate(self) -> None:
        """验证配置"""
        positive = {
            "EPISODES_PER_BATCH": self.episodes_per_batch,
            "ASSUMED_TOTAL_EPISODES": self.assumed_total_episodes,
            "SOURCE_WINDOW_SIZE": self.window_size,
            "OUTLINE_SOURCE_LIMIT": self.outline_source_limit,
            "CONTINUITY_CHARS": self.continuity_chars,
            "PROMPT_CONTEXT_CHARS": self.prompt_context_chars,
            "MAX_OUTPUT_TOKENS": self.max_tokens,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigurationError(f"{name}必须大于0")

        if self.window_backtrack < 0:
            raise ConfigurationError("SOURCE_WINDOW_BACKTRACK不能小于0")

        if self.prompt_context_chars > self.continuity_chars:
            raise ConfigurationError("PROMPT_CONTEXT_CHARS不能大于CONTINUITY_CHARS")

        if not 0 <= self.temperature <= 2:
            raise ConfigurationError("GENERATION_TEMPERATURE必须在0到2之间")


# 全局配置实例
_api_config = None
_generation_config = None


def get_api_config() -> APIConfig:
    """获取API配置单例"""
    global _api_config
    if _api_config is None:
        _api_config = APIConfig()
    return _api_config


def get_generation_config() -> GenerationConfig:
    """获取生成配置单例"""
    global _generation_config
    if _generation_config is None:
        _generation_config = GenerationConfig()
    return _generation_config


def reset_config() -> None:
    """丢弃缓存的配置，下次访问时重新读取环境变量"""
    global _api_config, _generation_config
    _api_config = None
    _generation_config = None


def create_env_file(env_file: str = ".env") -> bool:
    """创建.env文件模板（如果不存在）"""
    if os.path.exists(env_file):
        return False
    with open(env_file, "w", encoding="utf-8") as f:
        f.write(
            """# 漫剧剧本工坊环境变量配置
# 复制此文件并填入你的API密钥

# 客户端类型: http（直接调用聊天补全接口）或 openai（使用 openai SDK）
API_PROVIDER=http

API_KEY=your_api_key_here
API_BASE=https://openrouter.ai/api/v1
MODEL_NAME=google/gemini-3-flash-preview
# REQUEST_TIMEOUT=600

# 分批与窗口参数（可选）
EPISODES_PER_BATCH=3
ASSUMED_TOTAL_EPISODES=80
SOURCE_WINDOW_SIZE=150000
SOURCE_WINDOW_BACKTRACK=20000
CONTINUITY_CHARS=25000
PROMPT_CONTEXT_CHARS=1500
OUTLINE_SOURCE_LIMIT=300000
GENERATION_TEMPERATURE=0.85
MAX_OUTPUT_TOKENS=8192

# 存储目录（可选）
DATA_DIR=data
EXPORT_DIR=outputs

# 日志级别（可选）: DEBUG, INFO, WARNING, ERROR
LOG_LEVEL=INFO

# 代理配置（可选）
USE_PROXY=false
PROXY_URL=http://127.0.0.1:7897
"""
        )
    return True
