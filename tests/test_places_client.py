import pytest
import requests

from lunchmap import config
from lunchmap.geo import Coordinate
from lunchmap.http import HttpClient, RequestMetrics
from lunchmap.models import PlaceRecord, ProviderStatus, SearchQuery
from lunchmap.places_client import (
    KakaoPlacesClient,
    build_keyword_search_params,
    parse_place_document,
    parse_places,
)

ORIGIN = Coordinate(37.5665, 126.9780)


class FakeResponse:
    def __init__(self, payload, status_code=200, headers=None):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_http_client(responses, retry_max=1):
    client = HttpClient(
        api_key="dummy",
        timeout=1,
        retry_max=retry_max,
        backoff_base=0.0,
        backoff_max=0.0,
    )
    client.session = FakeSession(responses)
    return client


def search(client, keyword="김치찌개", options=None):
    captured = {}

    def callback(results, status):
        captured["results"] = results
        captured["status"] = status

    client.keyword_search(keyword, callback, options or {"location": ORIGIN, "radius": 5000})
    return captured["results"], captured["status"]


def kakao_doc(place_id="1", name="Kimchi House"):
    return {
        "id": place_id,
        "place_name": name,
        "x": "126.9790",
        "y": "37.5670",
        "address_name": "Seoul Jung-gu",
        "road_address_name": "Sejong-daero 110",
        "phone": "02-123-4567",
        "category_name": "음식점 > 한식 > 찌개,전골",
        "place_url": "http://place.map.kakao.com/1",
        "distance": "87",
    }


def test_build_params_clamps_radius_and_size():
    params = build_keyword_search_params(
        " 김치찌개 ",
        {"location": ORIGIN, "radius": 30000, "size": 50, "page": 0, "sort": "distance"},
    )
    assert params == {
        "query": "김치찌개",
        "page": 1,
        "size": config.PLACES_PAGE_SIZE,
        "x": 126.9780,
        "y": 37.5665,
        "radius": config.PLACES_MAX_RADIUS_M,
        "sort": "distance",
        "category_group_code": "FD6",
    }


def test_build_params_without_location_drops_distance_sort():
    params = build_keyword_search_params("김치찌개", {"radius": 3000, "sort": "distance"})
    assert "x" not in params
    assert "radius" not in params
    assert params["sort"] == "accuracy"


def test_build_params_accepts_dict_and_tuple_locations():
    from_dict = build_keyword_search_params("a", {"location": {"lat": 37.5, "lng": 127.0}})
    from_tuple = build_keyword_search_params("a", {"location": (37.5, 127.0)})
    assert (from_dict["y"], from_dict["x"]) == (37.5, 127.0)
    assert (from_tuple["y"], from_tuple["x"]) == (37.5, 127.0)
    with pytest.raises(ValueError):
        build_keyword_search_params("a", {"location": "somewhere"})
    with pytest.raises(ValueError):
        build_keyword_search_params("  ", {})


def test_parse_place_document_maps_fields():
    record = parse_place_document(kakao_doc())
    assert record.id == "1"
    assert record.name == "Kimchi House"
    assert record.coordinate == Coordinate(37.5670, 126.9790)
    assert record.road_address == "Sejong-daero 110"
    assert record.external_url == "http://place.map.kakao.com/1"
    assert record.distance_m is None


def test_parse_places_skips_unusable_documents():
    existing = PlaceRecord(id="x", name="X", coordinate=ORIGIN)
    documents = [
        kakao_doc("1"),
        {"place_name": "no id", "x": "127", "y": "37"},
        {"id": "2", "place_name": "no coords"},
        {"id": "3", "x": "abc", "y": "37"},
        "garbage",
        existing,
    ]
    assert [p.id for p in parse_places(documents)] == ["1", "x"]


def test_keyword_search_ok_and_zero_result():
    client = KakaoPlacesClient(make_http_client([FakeResponse({"documents": [kakao_doc()]})]))
    results, status = search(client)
    assert status is ProviderStatus.OK
    assert results[0]["id"] == "1"

    empty = KakaoPlacesClient(make_http_client([FakeResponse({"documents": []})]))
    results, status = search(empty)
    assert status is ProviderStatus.ZERO_RESULT
    assert results == []


def test_keyword_search_sends_kakao_auth_header():
    http_client = make_http_client([FakeResponse({"documents": []})])
    search(KakaoPlacesClient(http_client))
    call = http_client.session.calls[0]
    assert call["url"] == config.KAKAO_KEYWORD_SEARCH_URL
    assert call["headers"]["Authorization"] == "KakaoAK dummy"
    assert call["params"]["query"] == "김치찌개"


@pytest.mark.parametrize(
    "response,expected",
    [
        (FakeResponse({}, status_code=400), ProviderStatus.INVALID_PARAMS),
        (FakeResponse({}, status_code=401), ProviderStatus.ERROR_RESPONSE),
        (FakeResponse({}, status_code=503), ProviderStatus.ERROR_RESPONSE),
        (requests.ConnectionError("offline"), ProviderStatus.ERROR_RESPONSE),
    ],
)
def test_keyword_search_error_statuses(response, expected):
    metrics = RequestMetrics()
    client = KakaoPlacesClient(make_http_client([response]), metrics=metrics)
    results, status = search(client)
    assert status is expected
    assert results == []
    assert metrics.failed_places == 1


def test_invalid_options_report_invalid_params():
    http_client = make_http_client([FakeResponse({"documents": []})])
    client = KakaoPlacesClient(http_client)
    _, status = search(client, options={"location": "nowhere"})
    assert status is ProviderStatus.INVALID_PARAMS
    assert http_client.session.calls == []


def test_repeat_queries_are_memoised():
    metrics = RequestMetrics()
    http_client = make_http_client([FakeResponse({"documents": [kakao_doc()]})])
    client = KakaoPlacesClient(http_client, metrics=metrics)
    search(client)
    search(client)
    assert metrics.network_places == 1
    assert metrics.memo_hits_places == 1
    assert len(http_client.session.calls) == 1


def test_no_memo_always_hits_network():
    metrics = RequestMetrics()
    http_client = make_http_client([FakeResponse({"documents": [kakao_doc()]})])
    client = KakaoPlacesClient(http_client, metrics=metrics, no_memo=True)
    search(client)
    search(client)
    assert metrics.network_places == 2
    assert metrics.memo_hits_places == 0


def test_http_client_retries_rate_limits():
    http_client = make_http_client(
        [
            FakeResponse({}, status_code=429, headers={"Retry-After": "0"}),
            FakeResponse({"documents": []}),
        ],
        retry_max=3,
    )
    payload = http_client.get_json(config.KAKAO_KEYWORD_SEARCH_URL, {"query": "a"})
    assert payload == {"documents": []}
    assert len(http_client.session.calls) == 2


def test_is_ready_requires_api_key():
    assert KakaoPlacesClient(make_http_client([FakeResponse({})])).is_ready()
    blank = HttpClient(api_key="  ")
    assert not KakaoPlacesClient(blank).is_ready()


def test_top_ladder_rung_is_clamped_to_provider_maximum():
    http_client = make_http_client([FakeResponse({"documents": []})])
    options = SearchQuery("김치찌개", ORIGIN, config.RADIUS_LADDER_M[-1]).to_options()
    search(KakaoPlacesClient(http_client), options=options)
    assert config.RADIUS_LADDER_M[-1] > config.PLACES_MAX_RADIUS_M
    assert http_client.session.calls[0]["params"]["radius"] == config.PLACES_MAX_RADIUS_M
