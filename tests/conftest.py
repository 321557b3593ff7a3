"""Shared test fixtures for kubeutil tests."""

from unittest.mock import patch

import pytest

from kubeutil.config import ENV_VARS
from kubeutil.kubectl import Kubectl
from tests.fakes import FakeRunner


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Fixture providing an empty FakeRunner."""
    return FakeRunner()


@pytest.fixture
def kubectl(fake_runner: FakeRunner) -> Kubectl:
    """Fixture providing a Kubectl wired to the fake runner."""
    return Kubectl(runner=fake_runner)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at tmp_path and clear KUBEUTIL_* variables."""
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)

    config_file = tmp_path / ".kubeutil" / "config.yaml"
    with patch("kubeutil.config.get_config_path", return_value=config_file):
        yield config_file
