"""Shared fixtures for threadkeep tests."""

import pytest


@pytest.fixture(autouse=True)
def _no_sops(monkeypatch):
    """Ensure tests never try to invoke SOPS."""
    monkeypatch.setenv("THREADKEEP_USE_SOPS", "false")
