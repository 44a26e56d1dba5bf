import pytest

from nzunload.config import _ENV_NAMES


@pytest.fixture(autouse=True)
def clean_nz_env(monkeypatch):
    for name in _ENV_NAMES.values():
        monkeypatch.delenv(name, raising=False)
