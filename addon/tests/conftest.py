"""
Pytest configuration for the AirSend add-on tests.

- Ensures the repository root is on sys.path so imports like
  `from addon.airsend_core import ...` resolve consistently.
- Restores the add-on logger after each test so handler changes made by
  setup_logging() do not leak between tests.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    """Prepend the repository root to sys.path.

    Tests live under addon/tests/**. We need the parent of 'addon' (repo root)
    on sys.path so that the package import style `addon.airsend_core.*` works.
    """
    tests_dir = Path(__file__).resolve().parent
    repo_root = tests_dir.parent.parent
    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)


_ensure_repo_root_on_syspath()

from addon.airsend_core.config_resolver import load_device_config  # noqa: E402
from addon.airsend_core.logging_setup import logger as addon_logger  # noqa: E402
from addon.tests.helpers.fakes import FakeHub, FakeTransport  # noqa: E402
from addon.tests.helpers.samples import DEVICES_YAML, SECRETS_YAML  # noqa: E402


@pytest.fixture(autouse=True)
def _restore_addon_logger():
    handlers = list(addon_logger.handlers)
    level = addon_logger.level
    propagate = addon_logger.propagate
    addon_logger.propagate = True
    yield
    addon_logger.handlers[:] = handlers
    addon_logger.setLevel(level)
    addon_logger.propagate = propagate


@pytest.fixture
def caplog_level(caplog):
    caplog.set_level(logging.DEBUG, logger="addon.airsend_core")
    return caplog


@pytest.fixture
def device_config():
    return load_device_config(DEVICES_YAML, SECRETS_YAML)


@pytest.fixture
def fake_hub():
    return FakeHub()


@pytest.fixture
def fake_transport():
    return FakeTransport()
