"""
Shared utility and configuration tests.
"""

import logging

from core.config import Settings
from shared.utils import level_from_name, log_execution_time, setup_logger


def test_setup_logger_does_not_duplicate_handlers():
    first = setup_logger("posefit.test_utils", logging.DEBUG)
    second = setup_logger("posefit.test_utils", logging.DEBUG)

    assert first is second
    assert len(second.handlers) == 1
    assert second.level == logging.DEBUG


def test_level_from_name():
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name("WARNING") == logging.WARNING
    assert level_from_name("chatty") == logging.INFO


def test_log_execution_time_returns_result():
    @log_execution_time
    def add(a, b):
        return a + b

    assert add(2, 3) == 5
    assert add.__name__ == "add"


def test_settings_defaults():
    settings = Settings()

    assert settings.MIN_JOINT_CONFIDENCE == 0.5
    assert settings.REALTIME_MAX_ANALYSES_PER_SECOND == 10.0
    assert settings.FEEDBACK_DISPLAY_SECONDS == 3.0
    assert settings.BATCH_FRAMES_PER_SECOND == 5.0
    assert settings.MAX_RECOMMENDATIONS == 3


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("THREAD_POOL_SIZE", "8")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = Settings()

    assert settings.THREAD_POOL_SIZE == 8
    assert level_from_name(settings.LOG_LEVEL) == logging.DEBUG
