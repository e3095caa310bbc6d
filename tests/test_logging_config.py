"""测试日志配置功能"""

import logging

import pytest

import utils
from utils import setup_logging


@pytest.fixture(autouse=True)
def reset_logging_state():
    """每次测试前重置日志配置状态"""
    utils._logging_configured = False
    root = logging.getLogger()
    original_level = root.level
    yield
    # 测试后显式关闭处理器以释放文件句柄
    utils._logging_configured = False
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    root.setLevel(original_level)


def test_log_file_has_content(tmp_path):
    """测试日志文件可以正确写入内容"""
    log_file = tmp_path / "script_workshop.log"
    setup_logging(log_file=str(log_file))

    test_logger = logging.getLogger("test_module")
    test_logger.info("Test log message")

    content = log_file.read_text(encoding="utf-8")
    assert "Test log message" in content
    assert "test_module" in content
    assert "INFO" in content


def test_log_level_from_env(tmp_path, monkeypatch):
    """测试从环境变量读取日志级别"""
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    setup_logging(log_file=str(tmp_path / "debug.log"))
    assert logging.getLogger().level == logging.DEBUG


def test_console_only():
    """log_file 为 None 时只输出到控制台"""
    setup_logging(level=logging.WARNING, log_file=None)
    root_logger = logging.getLogger()
    assert root_logger.level == logging.WARNING
    assert not any(isinstance(h, logging.FileHandler) for h in root_logger.handlers)


def test_logging_idempotent(tmp_path):
    """测试多次调用 setup_logging 不会重复添加处理器"""
    setup_logging(log_file=str(tmp_path / "a.log"))
    root_logger = logging.getLogger()
    handler_count_before = len(root_logger.handlers)

    setup_logging(level=logging.ERROR, log_file=str(tmp_path / "b.log"))

    assert len(root_logger.handlers) == handler_count_before
    assert not (tmp_path / "b.log").exists()
