import json

import httpx
import pytest

import config
from config import APIConfig
from exceptions import APIKeyError, GenerationRequestError, MalformedResponseError
from services.llm_service import (
    GENERIC_FAILURE_MESSAGE,
    HttpGenerationClient,
    OpenAIGenerationClient,
    create_generation_client,
    error_message_from_body,
    extract_content,
)


def _completion(content="生成的剧本"):
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


def _http_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHelpers:
    def test_extract_content(self):
        assert extract_content(_completion("ok")) == "ok"

    @pytest.mark.parametrize("payload", [
        {},
        {"choices": []},
        {"choices": [{}]},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
        ["not", "a", "dict"],
    ])
    def test_extract_content_malformed(self, payload):
        with pytest.raises(MalformedResponseError):
            extract_content(payload)

    def test_error_message_from_body(self):
        assert error_message_from_body({"error": {"message": "额度不足"}}) == "额度不足"
        assert error_message_from_body({"message": "模型不存在"}) == "模型不存在"
        assert error_message_from_body({"error": "x"}) == GENERIC_FAILURE_MESSAGE
        assert error_message_from_body(None) == GENERIC_FAILURE_MESSAGE


class TestHttpGenerationClient:
    @pytest.mark.asyncio
    async def test_success(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_completion("EP1-3 CONTENT"))

        client = HttpGenerationClient(http_client=_http_client(handler))
        response = await client.generate("写剧本", 0.85, label="测试")

        assert response.content == "EP1-3 CONTENT"
        assert response.finish_reason == "stop"
        assert response.response_time is not None
        assert captured["url"] == "https://llm.test/api/v1/chat/completions"
        assert captured["headers"]["Authorization"] == "Bearer test-key-for-ci"
        assert captured["headers"]["X-Title"] == "YuanMu AI Script Workshop"
        assert captured["body"] == {
            "model": "test-model",
            "messages": [{"role": "user", "content": "写剧本"}],
            "temperature": 0.85,
            "max_tokens": 8192,
        }

    @pytest.mark.asyncio
    async def test_complete_returns_text(self):
        client = HttpGenerationClient(
            http_client=_http_client(lambda request: httpx.Response(200, json=_completion("ok")))
        )
        assert await client.complete("ping", 0.5, model="other-model") == "ok"

    @pytest.mark.asyncio
    async def test_error_message_from_response(self):
        def handler(request):
            return httpx.Response(402, json={"error": {"message": "额度不足"}})

        client = HttpGenerationClient(http_client=_http_client(handler))
        with pytest.raises(GenerationRequestError) as exc_info:
            await client.generate("ping", 0.85)
        assert exc_info.value.message == "额度不足"
        assert exc_info.value.status_code == 402

    @pytest.mark.asyncio
    async def test_generic_error_message(self):
        def handler(request):
            return httpx.Response(500, text="internal error")

        client = HttpGenerationClient(http_client=_http_client(handler))
        with pytest.raises(GenerationRequestError) as exc_info:
            await client.generate("ping", 0.85)
        assert exc_info.value.message == GENERIC_FAILURE_MESSAGE
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = HttpGenerationClient(http_client=_http_client(handler))
        with pytest.raises(GenerationRequestError):
            await client.generate("ping", 0.85)

    @pytest.mark.asyncio
    async def test_missing_content(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        client = HttpGenerationClient(http_client=_http_client(handler))
        with pytest.raises(MalformedResponseError):
            await client.generate("ping", 0.85)

    @pytest.mark.asyncio
    async def test_non_json_success(self):
        def handler(request):
            return httpx.Response(200, text="<html>gateway</html>")

        client = HttpGenerationClient(http_client=_http_client(handler))
        with pytest.raises(MalformedResponseError):
            await client.generate("ping", 0.85)

    @pytest.mark.asyncio
    async def test_no_retry(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={"error": {"message": "busy"}})

        client = HttpGenerationClient(http_client=_http_client(handler))
        with pytest.raises(GenerationRequestError):
            await client.generate("ping", 0.85)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_placeholder_key_rejected(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "your_api_key_here")
        config.reset_config()
        client = HttpGenerationClient(
            http_client=_http_client(lambda request: httpx.Response(200, json=_completion()))
        )
        with pytest.raises(APIKeyError):
            await client.generate("ping", 0.85)

    @pytest.mark.asyncio
    async def test_shared_clients(self):
        try:
            first = HttpGenerationClient.get_http_client()
            assert HttpGenerationClient.get_http_client() is first
            proxied = HttpGenerationClient.get_http_client("http://127.0.0.1:7897")
            assert proxied is not first
        finally:
            await HttpGenerationClient.close_http_clients()
        assert HttpGenerationClient._http_client is None


class TestOpenAIGenerationClient:
    @pytest.fixture
    def mock_http(self, monkeypatch):
        def install(handler):
            monkeypatch.setattr(HttpGenerationClient, "_http_client", _http_client(handler))

        return install

    @pytest.mark.asyncio
    async def test_success(self, mock_http):
        mock_http(lambda request: httpx.Response(200, json=_completion("剧本")))
        client = OpenAIGenerationClient(APIConfig(provider="openai"))
        response = await client.generate("ping", 0.85)
        assert response.content == "剧本"
        assert response.token_usage["total_tokens"] == 15

    @pytest.mark.asyncio
    async def test_status_error(self, mock_http):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, json={"error": {"message": "rate limited"}})

        mock_http(handler)
        client = OpenAIGenerationClient(APIConfig(provider="openai"))
        with pytest.raises(GenerationRequestError) as exc_info:
            await client.generate("ping", 0.85)
        assert exc_info.value.message == "rate limited"
        assert exc_info.value.status_code == 429
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_empty_choices(self, mock_http):
        payload = _completion()
        payload["choices"] = []
        mock_http(lambda request: httpx.Response(200, json=payload))
        client = OpenAIGenerationClient(APIConfig(provider="openai"))
        with pytest.raises(MalformedResponseError):
            await client.generate("ping", 0.85)


def test_create_generation_client(monkeypatch):
    monkeypatch.setattr(
        HttpGenerationClient,
        "_http_client",
        _http_client(lambda request: httpx.Response(200, json=_completion())),
    )
    assert isinstance(create_generation_client(), HttpGenerationClient)
    assert isinstance(create_generation_client(APIConfig(provider="openai")), OpenAIGenerationClient)
