import pytest

from an1mestream.config.settings import settings
from an1mestream.utils.cache import MetadataCaches

from tests.fakes import FakeHTTPClient


@pytest.fixture()
def fake_client() -> FakeHTTPClient:
    return FakeHTTPClient()


@pytest.fixture()
def caches() -> MetadataCaches:
    return MetadataCaches()


@pytest.fixture(autouse=True)
def no_jikan_delay(monkeypatch):
    monkeypatch.setattr(settings, "JIKAN_PAGE_DELAY", 0)
