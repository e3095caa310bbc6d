"""
测试自定义异常类模块
"""

import pytest

from exceptions import (
    APIKeyError,
    ConfigurationError,
    DocumentNotFoundError,
    EncodingError,
    FileValidationError,
    GenerationInProgressError,
    GenerationRequestError,
    MalformedResponseError,
    MissingOutlineError,
    MissingSelectionError,
    PersistenceReadError,
    PersistenceWriteError,
    PreconditionError,
    ProjectNotFoundError,
    ScriptWorkshopError,
)


class TestScriptWorkshopError:
    """测试ScriptWorkshopError基础异常类"""

    def test_with_message(self):
        error = ScriptWorkshopError("测试错误消息")
        assert str(error) == "测试错误消息"
        assert error.message == "测试错误消息"
        assert error.details is None

    def test_with_details(self):
        error = ScriptWorkshopError("测试错误消息", details="详细错误信息")
        assert error.details == "详细错误信息"


@pytest.mark.parametrize("error_class", [
    APIKeyError,
    ConfigurationError,
    EncodingError,
    FileValidationError,
    PersistenceReadError,
    PersistenceWriteError,
])
def test_simple_errors_inherit_base(error_class):
    error = error_class("消息")
    assert isinstance(error, ScriptWorkshopError)
    assert error.message == "消息"


class TestPreconditionErrors:
    """测试生成前置条件异常"""

    def test_missing_selection(self):
        error = MissingSelectionError("原著小说")
        assert isinstance(error, PreconditionError)
        assert error.role == "原著小说"
        assert error.message == "请先选择原著小说指向"

    def test_missing_outline(self):
        error = MissingOutlineError()
        assert isinstance(error, PreconditionError)
        assert error.message == "请先生成剧情大纲"

    def test_generation_in_progress(self):
        error = GenerationInProgressError("p1")
        assert isinstance(error, PreconditionError)
        assert error.project_id == "p1"
        assert "p1" in error.message


class TestGenerationErrors:
    """测试生成服务异常"""

    def test_request_error_status(self):
        error = GenerationRequestError("请求失败", status_code=500)
        assert error.status_code == 500
        assert GenerationRequestError("网络错误").status_code is None

    def test_malformed_payload(self):
        error = MalformedResponseError("缺少内容", payload={"choices": []})
        assert error.payload == {"choices": []}
        assert not isinstance(error, GenerationRequestError)


def test_not_found_errors():
    assert ProjectNotFoundError("p1").project_id == "p1"
    error = DocumentNotFoundError("d1", details="类别不符")
    assert error.document_id == "d1"
    assert error.details == "类别不符"
