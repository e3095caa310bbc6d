"""
生成服务客户端模块
提供统一的聊天补全调用接口：complete(prompt, temperature, model) -> 文本

客户端不做自动重试；失败由调用方决定是否重新发起。
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import httpx
import openai

from config import APIConfig, get_api_config, get_generation_config
from exceptions import GenerationRequestError, MalformedResponseError

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "请求失败"


@dataclass
class LLMResponse:
    """生成服务响应模型"""
    content: str
    token_usage: Optional[Dict[str, int]] = None
    response_time: Optional[float] = None
    model: Optional[str] = None
    finish_reason: Optional[str] = None


def extract_content(payload: Any) -> str:
    """提取 choices[0].message.content，路径缺失即视为响应格式错误"""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError("生成服务响应缺少 choices[0].message.content", payload) from e
    if not isinstance(content, str):
        raise MalformedResponseError("生成服务返回的内容不是文本", payload)
    return content


def error_message_from_body(body: Any) -> str:
    """从错误响应体中读取 error.message，读取不到时返回通用提示"""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
        # openai SDK 的 APIStatusError.body 已经是 error 对象本身
        if isinstance(body.get("message"), str) and body["message"]:
            return body["message"]
    return GENERIC_FAILURE_MESSAGE


class GenerationClient(ABC):
    """生成服务客户端基类"""

    def __init__(self, api_config: Optional[APIConfig] = None, max_tokens: Optional[int] = None):
        self.api_config = api_config or get_api_config()
        self.max_tokens = max_tokens or get_generation_config().max_tokens
        self._init_client()

    @abstractmethod
    def _init_client(self) -> None:
        """初始化客户端"""
        pass

    @abstractmethod
    async def _call_api(self, prompt: str, temperature: float, model: str) -> LLMResponse:
        """调用API的具体实现"""
        pass

    async def generate(self,
                       prompt: str,
                       temperature: float,
                       model: Optional[str] = None,
                       label: Optional[str] = None) -> LLMResponse:
        """发起一次生成请求，返回完整响应对象"""
        request_info = f" [{label}]" if label else ""
        model = model or self.api_config.model_name

        logger.debug(f"调用生成服务{request_info}，模型: {model}，提示词长度: {len(prompt)}")
        start_time = datetime.now()
        try:
            llm_response = await self._call_api(prompt, temperature, model)
        except (GenerationRequestError, MalformedResponseError) as e:
            logger.error(f"生成服务调用失败{request_info}: {e.message}")
            raise

        llm_response.response_time = (datetime.now() - start_time).total_seconds()
        logger.debug(f"生成服务调用成功{request_info}，耗时: {llm_response.response_time:.2f}秒")
        return llm_response

    async def complete(self, prompt: str, temperature: float, model: Optional[str] = None) -> str:
        """统一的调用接口，只返回结果文本"""
        response = await self.generate(prompt, temperature, model)
        return response.content

    async def aclose(self) -> None:
        """释放客户端资源"""
        pass


class HttpGenerationClient(GenerationClient):
    """直接以 HTTP POST 调用聊天补全接口"""

    _http_client: Optional[httpx.AsyncClient] = None
    _proxy_clients: Dict[str, httpx.AsyncClient] = {}

    def __init__(self,
                 api_config: Optional[APIConfig] = None,
                 max_tokens: Optional[int] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self._injected_client = http_client
        super().__init__(api_config, max_tokens)

    @classmethod
    def get_http_client(cls, proxy_url: Optional[str] = None, timeout: float = 600.0) -> httpx.AsyncClient:
        if proxy_url:
            client = cls._proxy_clients.get(proxy_url)
            if client is None:
                client = httpx.AsyncClient(
                    proxy=proxy_url,
                    limits=httpx.Limits(max_connections=20),
                    timeout=timeout
                )
                cls._proxy_clients[proxy_url] = client
            return client

        if cls._http_client is None:
            cls._http_client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=20),
                timeout=timeout
            )
        return cls._http_client

    @classmethod
    async def close_http_clients(cls) -> None:
        """关闭所有HTTP客户端连接池"""
        for proxy_url, client in list(cls._proxy_clients.items()):
            try:
                await client.aclose()
                logger.debug(f"已关闭代理客户端: {proxy_url}")
            except httpx.HTTPError as e:
                logger.warning(f"关闭代理客户端失败 ({proxy_url}): {e}")
        cls._proxy_clients.clear()

        if cls._http_client is not None:
            try:
                await cls._http_client.aclose()
                logger.debug("已关闭主HTTP客户端")
            except httpx.HTTPError as e:
                logger.warning(f"关闭主HTTP客户端失败: {e}")
            cls._http_client = None

    def _init_client(self) -> None:
        """初始化HTTP客户端"""
        self.api_config.validate()
        if self._injected_client is not None:
            self.client = self._injected_client
        else:
            proxy_url = self.api_config.proxy
            if proxy_url:
                logger.debug(f"生成服务客户端配置代理: {proxy_url}")
            self.client = self.get_http_client(proxy_url, self.api_config.request_timeout)
        logger.info(f"生成服务HTTP客户端初始化成功 (模型: {self.api_config.model_name})")

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_config.api_key}",
            "Content-Type": "application/json",
        }
        if self.api_config.app_title:
            headers["X-Title"] = self.api_config.app_title
        if self.api_config.app_referer:
            headers["HTTP-Referer"] = self.api_config.app_referer
        return headers

    async def _call_api(self, prompt: str, temperature: float, model: str) -> LLMResponse:
        """调用聊天补全接口"""
        body = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": self.max_tokens,
        }
        try:
            response = await self.client.post(
                self.api_config.completions_url,
                json=body,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            raise GenerationRequestError(f"请求生成服务失败: {e}") from e

        if not response.is_success:
            try:
                error_body = response.json()
            except ValueError:
                error_body = None
            raise GenerationRequestError(
                error_message_from_body(error_body), status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError("生成服务返回的不是有效的JSON", response.text) from e

        content = extract_content(payload)
        choice = payload["choices"][0]
        return LLMResponse(
            content=content,
            token_usage=payload.get("usage"),
            model=payload.get("model"),
            finish_reason=choice.get("finish_reason"),
        )


class OpenAIGenerationClient(GenerationClient):
    """通过 openai SDK 调用 OpenAI 兼容接口"""

    def _init_client(self) -> None:
        """初始化OpenAI客户端"""
        self.api_config.validate()
        default_headers = {}
        if self.api_config.app_title:
            default_headers["X-Title"] = self.api_config.app_title
        if self.api_config.app_referer:
            default_headers["HTTP-Referer"] = self.api_config.app_referer

        proxy_url = self.api_config.proxy
        http_client = HttpGenerationClient.get_http_client(proxy_url, self.api_config.request_timeout)
        self.client = openai.AsyncOpenAI(
            api_key=self.api_config.api_key,
            base_url=self.api_config.api_base,
            http_client=http_client,
            default_headers=default_headers or None,
            max_retries=0,
        )
        logger.info(f"OpenAI兼容客户端初始化成功 (模型: {self.api_config.model_name})")

    async def _call_api(self, prompt: str, temperature: float, model: str) -> LLMResponse:
        """调用OpenAI兼容接口"""
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=self.max_tokens,
            )
        except openai.APIStatusError as e:
            raise GenerationRequestError(
                error_message_from_body(e.body), status_code=e.status_code
            ) from e
        except openai.APIResponseValidationError as e:
            raise MalformedResponseError(f"生成服务响应格式错误: {e}") from e
        except openai.APIError as e:
            raise GenerationRequestError(f"请求生成服务失败: {e}") from e

        if not response.choices or response.choices[0].message is None:
            raise MalformedResponseError("生成服务响应缺少 choices[0].message.content")
        content = response.choices[0].message.content
        if not isinstance(content, str):
            raise MalformedResponseError("生成服务响应缺少 choices[0].message.content")

        return LLMResponse(
            content=content,
            token_usage=response.usage.model_dump() if response.usage else None,
            model=response.model,
            finish_reason=response.choices[0].finish_reason
        )


def create_generation_client(api_config: Optional[APIConfig] = None) -> GenerationClient:
    """工厂函数：根据配置创建生成服务客户端"""
    api_config = api_config or get_api_config()
    api_config.validate()

    if api_config.provider == "http":
        return HttpGenerationClient(api_config)
    elif api_config.provider == "openai":
        return OpenAIGenerationClient(api_config)
    else:
        raise ValueError(f"不支持的API提供商: {api_config.provider}")
