import pytest
from app.settings import settings


@pytest.fixture(autouse=True)
def no_metrics_backend(monkeypatch):
    # Tests that care about metrics re-enable them and patch the Redis side.
    monkeypatch.setattr(settings, "METRICS_ENABLED", False)
    yield
