import httpx
import pytest

from an1mestream.config.settings import settings
from an1mestream.core.results import FailureKind, LookupStatus
from an1mestream.services.jikan import JikanService, parse_episode_entry, pick_image_url
from an1mestream.utils.cache import MetadataCache

from tests.fakes import make_response

SEARCH_HIT = {"data": [{
    "mal_id": 52991,
    "title": "Sousou no Frieren",
    "images": {
        "jpg": {"image_url": "https://cdn.myanimelist.net/images/anime/small.jpg",
                "large_image_url": "https://cdn.myanimelist.net/images/anime/large.jpg"},
        "webp": {"large_image_url": "https://cdn.myanimelist.net/images/anime/large.webp"}
    }
}]}


def episodes_page(entries, has_next):
    return {"data": entries, "pagination": {"last_visible_page": 3, "has_next_page": has_next}}


@pytest.fixture()
def service(fake_client):
    return JikanService(MetadataCache("jikan-cover"), MetadataCache("jikan-episodes"), client=fake_client)


def test_pick_image_url_prefers_large_jpg():
    assert pick_image_url(SEARCH_HIT["data"][0]) == "https://cdn.myanimelist.net/images/anime/large.jpg"


def test_pick_image_url_fallbacks():
    assert pick_image_url({"images": {"jpg": {"image_url": "https://a/small.jpg"}}}) == "https://a/small.jpg"
    assert pick_image_url({"images": {"jpg": {}}, "image_url": "https://a/root.jpg"}) == "https://a/root.jpg"
    assert pick_image_url({"images": {"jpg": {"large_image_url": "  "}}}) is None
    assert pick_image_url({}) is None


def test_parse_episode_entry():
    assert parse_episode_entry({"mal_id": 3, "title": " The Hero's Party "}) == (3, "The Hero's Party")
    assert parse_episode_entry({"mal_id": 4, "title": None, "title_romanji": "Tabidachi"}) == (4, "Tabidachi")
    assert parse_episode_entry({"mal_id": 5, "title": "", "title_romanji": ""}) == (None, None)
    assert parse_episode_entry({"mal_id": 0, "title": "Zero"}) == (None, None)
    assert parse_episode_entry({"title": "No number"}) == (None, None)


async def test_get_cover_searches_once(service, fake_client):
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    first = await service.get_cover("Frieren")
    second = await service.get_cover("FRIEREN")

    assert first.ok
    assert first.value.image_url == "https://cdn.myanimelist.net/images/anime/large.jpg"
    assert second is first
    assert len(fake_client.calls) == 1
    assert fake_client.calls[0]["params"] == {"q": "Frieren", "limit": 1}


async def test_get_cover_without_results_is_not_found(service, fake_client):
    fake_client.on("GET", "/anime", lambda call: make_response(json={"data": []}))

    result = await service.get_cover("Nothing Here")

    assert result.status is LookupStatus.NOT_FOUND
    assert (await service.get_cover("nothing here")) is result
    assert len(fake_client.calls) == 1


async def test_get_cover_rate_limited_is_failure(service, fake_client):
    fake_client.on("GET", "/anime", lambda call: make_response(429, json={"status": 429}))

    result = await service.get_cover("Frieren")

    assert result.status is LookupStatus.FAILED
    assert result.failure is FailureKind.NETWORK


async def test_episode_titles_walk_pages_until_last(service, fake_client):
    pages = {
        1: episodes_page([{"mal_id": 1, "title": "The Journey's End"}, {"mal_id": 2, "title": "It Didn't Have to Be Magic"}], True),
        2: episodes_page([{"mal_id": 3, "title": None, "title_romanji": "Koroshi no Mahou"}, {"mal_id": 4, "title": ""}], True),
        3: episodes_page([{"mal_id": 5, "title": "Phantoms of the Dead"}], False),
    }
    fake_client.on("GET", "/anime/52991/episodes", lambda call: make_response(json=pages[call["params"]["page"]]))
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.ok
    assert result.value == {
        1: "The Journey's End",
        2: "It Didn't Have to Be Magic",
        3: "Koroshi no Mahou",
        5: "Phantoms of the Dead",
    }
    assert [call["params"]["page"] for call in fake_client.calls_to("/episodes")] == [1, 2, 3]


async def test_episode_titles_stop_on_empty_page(service, fake_client):
    pages = {
        1: episodes_page([{"mal_id": 1, "title": "One"}], True),
        2: episodes_page([], True),
    }
    fake_client.on("GET", "/episodes", lambda call: make_response(json=pages[call["params"]["page"]]))
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.value == {1: "One"}
    assert len(fake_client.calls_to("/episodes")) == 2


async def test_episode_titles_respect_page_cap(service, fake_client, monkeypatch):
    monkeypatch.setattr(settings, "JIKAN_MAX_EPISODE_PAGES", 3)

    def endless(call):
        page = call["params"]["page"]
        return make_response(json=episodes_page([{"mal_id": page, "title": f"Episode {page}"}], True))

    fake_client.on("GET", "/episodes", endless)
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.value == {1: "Episode 1", 2: "Episode 2", 3: "Episode 3"}
    assert len(fake_client.calls_to("/episodes")) == 3


async def test_episode_titles_later_page_failure_keeps_partial_map(service, fake_client):
    def flaky(call):
        if call["params"]["page"] == 1:
            return make_response(json=episodes_page([{"mal_id": 1, "title": "One"}], True))
        raise httpx.ReadTimeout("slow")

    fake_client.on("GET", "/episodes", flaky)
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.ok
    assert result.value == {1: "One"}


async def test_episode_titles_first_page_failure_is_failure(service, fake_client):
    fake_client.on("GET", "/episodes", lambda call: make_response(503, text="down"))
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.status is LookupStatus.FAILED


async def test_episode_titles_without_search_match_is_empty_map(service, fake_client):
    fake_client.on("GET", "/anime", lambda call: make_response(json={"data": []}))

    result = await service.get_episode_titles("Unknown")

    assert result.ok
    assert result.value == {}
    assert fake_client.calls_to("/episodes") == []


async def test_episode_titles_malformed_later_page_keeps_partial_map(service, fake_client):
    pages = {
        1: episodes_page([{"mal_id": 1, "title": "One"}, "garbage", None], True),
        2: {"data": {"unexpected": "shape"}, "pagination": {"has_next_page": True}},
    }
    fake_client.on("GET", "/episodes", lambda call: make_response(json=pages[call["params"]["page"]]))
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.ok
    assert result.value == {1: "One"}
    assert len(fake_client.calls_to("/episodes")) == 2


async def test_episode_titles_non_dict_entries_are_skipped(service, fake_client):
    page = episodes_page(["garbage", {"mal_id": 2, "title": "Two"}], False)
    fake_client.on("GET", "/episodes", lambda call: make_response(json=page))
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.value == {2: "Two"}


async def test_episode_titles_malformed_first_page_is_parse_failure(service, fake_client):
    fake_client.on("GET", "/episodes", lambda call: make_response(json={"data": "nope"}))
    fake_client.on("GET", "/anime", lambda call: make_response(json=SEARCH_HIT))

    result = await service.get_episode_titles("Frieren")

    assert result.status is LookupStatus.FAILED
    assert result.failure is FailureKind.PARSE


async def test_get_cover_malformed_search_data_is_parse_failure(service, fake_client):
    fake_client.on("GET", "/anime", lambda call: make_response(json={"data": {"mal_id": 1}}))

    result = await service.get_cover("Frieren")

    assert result.status is LookupStatus.FAILED
    assert result.failure is FailureKind.PARSE


def test_parse_episode_entry_rejects_non_dicts():
    assert parse_episode_entry("garbage") == (None, None)
    assert parse_episode_entry(None) == (None, None)
