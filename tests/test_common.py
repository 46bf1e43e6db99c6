# tests/test_common.py
from __future__ import annotations

import logging

import pytest

from flakeid.core import config
from flakeid.core.commonExceptions import (
    ClockRegressionError,
    ErrorKind,
    GenerationResult,
    TimestampOverflowError,
    resultHandler,
)


def test_result_handler_wraps_success():
    @resultHandler
    def produce():
        return 99

    assert produce() == GenerationResult(value=99)


def test_result_handler_logs_tagged_failures(caplog):
    @resultHandler
    def produce():
        raise TimestampOverflowError("timestamp outside allowed range")

    with caplog.at_level(logging.ERROR, logger="flakeid.exceptions"):
        result = produce()

    assert result.error is ErrorKind.TIMESTAMP_OVERFLOW
    assert "TimestampOverflowError" in caplog.text
    assert "produce" in caplog.text


def test_result_handler_lets_unexpected_errors_through():
    @resultHandler
    def produce():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        produce()


def test_clock_regression_message():
    err = ClockRegressionError(last_timestamp=1000, current_timestamp=990)
    assert err.drift_ms == 10
    assert "10ms" in str(err)


def test_int_env_falls_back_on_garbage(monkeypatch):
    monkeypatch.setenv("FLAKEID_TEST_INT", "abc")
    assert config._int_env("FLAKEID_TEST_INT", 5) == 5
    monkeypatch.setenv("FLAKEID_TEST_INT", "8")
    assert config._int_env("FLAKEID_TEST_INT", 5) == 8
    monkeypatch.delenv("FLAKEID_TEST_INT")
    assert config._int_env("FLAKEID_TEST_INT", 5) == 5


def test_settings_are_iterable():
    settings = dict(config.AppEnvironmentSetup())
    assert set(settings) == {"DATACENTER_ID", "MACHINE_ID", "MAX_BACKOFF_MS", "LOG_LEVEL"}
    assert isinstance(settings["MAX_BACKOFF_MS"], int)


def test_dotenv_is_loaded_for_frozen_builds(tmp_path, monkeypatch):
    import importlib.util
    import os
    import sys

    (tmp_path / ".env").write_text("FLAKEID_DATACENTER_ID=7\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("FLAKEID_DATACENTER_ID", raising=False)
    monkeypatch.setattr(sys, "frozen", True, raising=False)

    # fresh copy of the module so the imported settings stay untouched
    module_spec = importlib.util.spec_from_file_location("flakeid_frozen_config", config.__file__)
    frozen_config = importlib.util.module_from_spec(module_spec)
    try:
        module_spec.loader.exec_module(frozen_config)
        assert frozen_config.AppEnvironmentSetup.DATACENTER_ID == "7"
    finally:
        # load_dotenv wrote into os.environ directly
        os.environ.pop("FLAKEID_DATACENTER_ID", None)
