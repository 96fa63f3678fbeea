import httpx
import pytest

from an1mestream.config.settings import settings
from an1mestream.core.results import FailureKind, LookupStatus
from an1mestream.services.anilist import AniListService, parse_media
from an1mestream.utils.cache import MetadataCache

from tests.fakes import make_response

MEDIA = {
    "id": 20,
    "title": {"romaji": "Naruto", "english": "Naruto", "native": "NARUTO -ナルト-"},
    "bannerImage": "https://img.anili.st/banner/20.jpg",
    "coverImage": {"large": "https://img.anili.st/cover/large/20.jpg", "medium": "https://img.anili.st/cover/medium/20.jpg"},
    "averageScore": 79,
    "episodes": 220,
    "description": "Upstream synopsis",
    "characters": {"edges": [
        {"role": "MAIN", "node": {"name": {"full": "Naruto Uzumaki"}},
         "voiceActors": [{"name": {"full": "Junko Takeuchi"}}, {"name": {"full": "Maile Flanagan"}}]},
        {"role": "SUPPORTING", "node": {"name": {"full": ""}}, "voiceActors": []},
        {"role": "MAIN", "node": {"name": {"full": "Sasuke Uchiha"}}, "voiceActors": None},
    ]},
    "staff": {"edges": [
        {"role": "Director", "node": {"name": {"full": "Hayato Date"}}},
        {"role": "Original Creator", "node": None},
    ]},
}


@pytest.fixture()
def service(fake_client):
    return AniListService(MetadataCache("anilist"), client=fake_client)


def test_parse_media_maps_fields():
    media = parse_media(MEDIA)

    assert media.id == 20
    assert media.title == "Naruto"
    assert media.banner_url == "https://img.anili.st/banner/20.jpg"
    assert media.cover_url == "https://img.anili.st/cover/large/20.jpg"
    assert media.average_score == 79
    assert [c.name for c in media.characters] == ["Naruto Uzumaki", "Sasuke Uchiha"]
    assert media.characters[0].voice_actors == ["Junko Takeuchi", "Maile Flanagan"]
    assert media.characters[1].voice_actors == []
    assert [s.name for s in media.staff] == ["Hayato Date"]


def test_parse_media_title_falls_back_to_romaji_then_native():
    assert parse_media({"title": {"english": " ", "romaji": "Shingeki no Kyojin"}}).title == "Shingeki no Kyojin"
    assert parse_media({"title": {"native": "進撃の巨人"}}).title == "進撃の巨人"
    assert parse_media({}).title is None


def test_parse_media_clamps_score():
    assert parse_media({"averageScore": 140}).average_score == 100
    assert parse_media({"averageScore": "85"}).average_score is None


async def test_get_media_posts_query_and_caches(service, fake_client):
    fake_client.on("POST", settings.ANILIST_API_URL, lambda call: make_response(json={"data": {"Media": MEDIA}}))

    first = await service.get_media("Naruto")
    second = await service.get_media("naruto ")

    assert first.ok
    assert first.value.title == "Naruto"
    assert second is first
    assert len(fake_client.calls) == 1

    variables = fake_client.calls[0]["json"]["variables"]
    assert variables["search"] == "Naruto"
    assert variables["charactersPerPage"] == settings.ANILIST_CHARACTERS_PER_PAGE
    assert variables["staffPerPage"] == settings.ANILIST_STAFF_PER_PAGE


async def test_get_media_not_found_is_cached(service, fake_client):
    fake_client.on("POST", settings.ANILIST_API_URL, lambda call: make_response(404, json={"data": {"Media": None}}))

    first = await service.get_media("Nonexistent Show")
    second = await service.get_media("Nonexistent Show")

    assert first.status is LookupStatus.NOT_FOUND
    assert second.status is LookupStatus.NOT_FOUND
    assert len(fake_client.calls) == 1


async def test_get_media_null_media_is_not_found(service, fake_client):
    fake_client.on("POST", settings.ANILIST_API_URL, lambda call: make_response(json={"data": {"Media": None}}))

    assert (await service.get_media("Empty")).status is LookupStatus.NOT_FOUND


async def test_get_media_server_error_is_network_failure(service, fake_client):
    fake_client.on("POST", settings.ANILIST_API_URL, lambda call: make_response(500, text="oops"))

    result = await service.get_media("Bleach")

    assert result.status is LookupStatus.FAILED
    assert result.failure is FailureKind.NETWORK


async def test_get_media_transport_error_is_network_failure(service, fake_client):
    def raise_timeout(call):
        raise httpx.ConnectTimeout("timed out")

    fake_client.on("POST", settings.ANILIST_API_URL, raise_timeout)

    result = await service.get_media("Bleach")

    assert result.failure is FailureKind.NETWORK
    assert result.detail == "ConnectTimeout"


async def test_get_media_malformed_body_is_parse_failure(service, fake_client):
    fake_client.on("POST", settings.ANILIST_API_URL, lambda call: make_response(text="<html>not json</html>"))

    result = await service.get_media("Bleach")

    assert result.status is LookupStatus.FAILED
    assert result.failure is FailureKind.PARSE


async def test_get_media_blank_title_skips_request(service, fake_client):
    result = await service.get_media("   ")

    assert result.status is LookupStatus.NOT_FOUND
    assert fake_client.calls == []
