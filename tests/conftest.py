import io

import pytest
from rich.console import Console

from dpctl.config.settings import settings


@pytest.fixture
def console():
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def fast_reachability(monkeypatch):
    monkeypatch.setattr(settings, "reachability_timeout", 0.2)
    monkeypatch.setattr(settings, "reachability_interval", 0.01)
