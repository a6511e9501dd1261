"""Shared fixtures."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from vcflink.config import AppConfig, EndpointConfig


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handler changes made by configure_logging during a test."""

    logger = logging.getLogger("vcflink")
    handlers = list(logger.handlers)
    propagate = logger.propagate
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = propagate
    logger.setLevel(level)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        log_file=None,
        controller=EndpointConfig(credentials_file=tmp_path / "sddc-manager.json"),
        server=EndpointConfig(credentials_file=tmp_path / "vcenter.json"),
    )
