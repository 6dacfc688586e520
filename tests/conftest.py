from __future__ import annotations

import pytest

from app.config import reset_patcher_config_cache
from services.patcher.constants import DESTINATION_ROOT_ENV, GITHUB_TOKEN_ENV, LOCAL_RELEASE_ENV


@pytest.fixture(autouse=True)
def _isolate_patcher_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
):
    """Keep tests away from real release sources, install roots and log files."""

    for name in (LOCAL_RELEASE_ENV, DESTINATION_ROOT_ENV, GITHUB_TOKEN_ENV, "PATCHER_LOG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PATCHER_LOG_DIR", str(tmp_path_factory.mktemp("logs")))
    reset_patcher_config_cache()
    yield
    reset_patcher_config_cache()
