"""
Pytest 配置文件
为测试提供环境变量、内存存储与假的生成服务客户端
"""
import pytest

import config
from models import DocumentRole
from services.generation_service import GenerationService
from services.llm_service import GenerationClient, LLMResponse
from services.project_store import ProjectStore
from services.state_storage import InMemoryStorage


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch, tmp_path):
    """为所有测试设置必要的环境变量"""
    monkeypatch.setenv('API_PROVIDER', 'http')
    # 测试用的 API Key（不需要真实的 key，测试使用 mock）
    monkeypatch.setenv('API_KEY', 'test-key-for-ci')
    monkeypatch.setenv('API_BASE', 'https://llm.test/api/v1')
    monkeypatch.setenv('MODEL_NAME', 'test-model')
    monkeypatch.setenv('DATA_DIR', str(tmp_path / 'data'))
    monkeypatch.setenv('EXPORT_DIR', str(tmp_path / 'outputs'))
    for name in (
        'EPISODES_PER_BATCH', 'ASSUMED_TOTAL_EPISODES', 'SOURCE_WINDOW_SIZE',
        'SOURCE_WINDOW_BACKTRACK', 'CONTINUITY_CHARS', 'PROMPT_CONTEXT_CHARS',
        'OUTLINE_SOURCE_LIMIT', 'USE_PROXY',
    ):
        monkeypatch.delenv(name, raising=False)
    config.reset_config()
    yield
    config.reset_config()


class FakeGenerationClient(GenerationClient):
    """按顺序返回预设结果的生成服务客户端"""

    def __init__(self, responses=None):
        self._responses = list(responses or [])
        self.prompts = []
        self.gate = None
        super().__init__()

    def _init_client(self) -> None:
        self.client = object()

    async def _call_api(self, prompt: str, temperature: float, model: str) -> LLMResponse:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        result = self._responses.pop(0) if self._responses else "生成内容"
        if isinstance(result, Exception):
            raise result
        return LLMResponse(content=result, model=model)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def store(storage):
    return ProjectStore(storage, config.STORAGE_KEY)


@pytest.fixture
def client_factory():
    return FakeGenerationClient


@pytest.fixture
def fake_client():
    return FakeGenerationClient()


@pytest.fixture
def generation_service(store, fake_client):
    return GenerationService(store, fake_client)


@pytest.fixture
def ready_project(store):
    """已上传并选择原著的作品"""
    project = store.create_project("测试作品")
    source = store.add_reference_document(
        project.id, "原著.txt", DocumentRole.PRIMARY_SOURCE, "原著内容" * 100
    )
    store.select_reference(project.id, DocumentRole.PRIMARY_SOURCE, source.id)
    return store.get_project(project.id)
