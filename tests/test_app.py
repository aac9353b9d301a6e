"""Tests for the bootstrap wiring."""

import logging
import logging.handlers
from unittest.mock import patch

import pytest
import structlog
from conftest import FakeAgent, MockConnector
from fastapi import FastAPI

from courier.agents.remote import RemoteAgent
from courier.app import (
    _configure_logging,
    build_app,
    build_connector,
    build_engine,
    build_retry,
)
from courier.connectors.discord import DiscordConnector


class TestBuildRetry:
    def test_policy_from_config(self, config):
        config = config.model_copy(
            update={"request_timeout_seconds": 3.0, "max_retries": 5}
        )
        policy = build_retry(config).policy
        assert policy.timeout == 3.0
        assert policy.max_retries == 5
        assert policy.base_delay == 1.0
        assert policy.factor == 2.0
        assert policy.max_delay == 5.0


class TestBuildEngine:
    def test_defaults_to_discord_and_remote_agent(self, config):
        with patch("courier.app._configure_logging"):
            engine = build_engine(config)
        assert isinstance(engine.connector, DiscordConnector)
        assert isinstance(engine.agent, RemoteAgent)
        assert engine.driver.config is config
        assert engine.driver.guard.period == 10.0
        assert engine.event_bus.handler_count("conversation.failed") == 1

    def test_accepts_injected_components(self, config):
        connector = MockConnector()
        agent = FakeAgent()
        with patch("courier.app._configure_logging"):
            engine = build_engine(config, connector=connector, agent=agent)
        assert engine.connector is connector
        assert engine.agent is agent
        assert engine.sweeper.connector is connector

    def test_configures_logging_with_log_dir(self, config, tmp_path):
        config = config.model_copy(update={"log_dir": tmp_path})
        with patch("courier.app._configure_logging") as configure:
            build_engine(config, connector=MockConnector(), agent=FakeAgent())
        configure.assert_called_once_with(config, log_dir=tmp_path)


class TestBuildConnector:
    def test_uses_config_api_base(self, config):
        connector = build_connector(config)
        assert isinstance(connector, DiscordConnector)


class TestBuildApp:
    def test_returns_fastapi_app(self, config):
        with patch("courier.app._configure_logging"):
            app = build_app(config)
        assert isinstance(app, FastAPI)
        paths = {route.path for route in app.routes}
        assert "/api/interactions" in paths
        assert "/" in paths


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers = handlers
        root.setLevel(level)
        structlog.reset_defaults()

    def test_console_and_rotating_file(self, config, tmp_path):
        config = config.model_copy(update={"log_level": "DEBUG"})
        _configure_logging(config, log_dir=tmp_path / "logs")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        rotating = root.handlers[1]
        assert isinstance(rotating, logging.handlers.RotatingFileHandler)
        assert rotating.baseFilename.endswith("courier.log")
        assert (tmp_path / "logs").is_dir()
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_console_only_without_log_dir(self, config):
        _configure_logging(config)
        assert len(logging.getLogger().handlers) == 1
