"""Tests for the search facade."""

from dataclasses import replace

import pytest

from product_search.errors import BackendUnavailableError, SearchFailedError
from product_search.models import SearchRequest
from product_search.search_service import SORT, ProductSearchService

from conftest import make_hit


@pytest.mark.parametrize("text", [None, "", "   ", "\t\n"])
def test_blank_query_returns_empty_without_backend_calls(backend, config, text):
    response = ProductSearchService(backend, config).search(SearchRequest(textQuery=text))

    assert response.totalHits == 0
    assert response.products == []
    assert response.facets == {}
    assert backend.calls == []


def test_search_issues_analyze_then_one_search(backend, config):
    backend.ranked_hits = [make_hit("2", "Calvin Klein", "Women ankle skinny jeans, model 1282", 129.0, 7.5)]

    response = ProductSearchService(backend, config).search(SearchRequest(textQuery="blue L jeans"))

    assert backend.operations() == ["analyze", "search"]
    search_call = backend.calls[1][1]
    assert search_call["index"] == "product_index"
    assert search_call["sort"] == SORT
    assert search_call["from_"] == 0
    assert search_call["size"] == 10
    assert search_call["track_total_hits"] is True
    assert len(search_call["query"]["bool"]["must"]) == 3
    assert response.totalHits == 1
    assert response.products[0]["id"] == "2"
    assert set(response.facets) == {"brand", "price", "color", "size"}


def test_sort_is_score_then_id_descending():
    assert [next(iter(entry)) for entry in SORT] == ["_score", "id"]
    assert all(next(iter(entry.values()))["order"] == "desc" for entry in SORT)


def test_pagination_returns_third_and_fourth_ranked(backend, config):
    backend.ranked_hits = [make_hit(str(i), "Levi's", f"jeans {i}", 50.0, 10.0 - i) for i in range(8, 0, -1)]

    response = ProductSearchService(backend, config).search(SearchRequest(textQuery="jeans", page=1, size=2))

    search_call = backend.calls[-1][1]
    assert (search_call["from_"], search_call["size"]) == (2, 2)
    assert response.totalHits == 8
    assert [product["id"] for product in response.products] == ["6", "5"]


def test_query_without_tokens_skips_search(backend, config):
    response = ProductSearchService(backend, config).search(SearchRequest(textQuery="!!!"))

    assert response.totalHits == 0
    assert backend.operations() == ["analyze"]


def test_analyzer_failure_becomes_search_failed(backend, config, unavailable):
    backend.errors["analyze"] = unavailable

    with pytest.raises(SearchFailedError) as excinfo:
        ProductSearchService(backend, config).search(SearchRequest(textQuery="jeans"))

    assert isinstance(excinfo.value.__cause__, BackendUnavailableError)
    assert "search" not in backend.operations()


def test_search_call_failure_becomes_search_failed(backend, config, unavailable):
    backend.errors["search"] = unavailable

    with pytest.raises(SearchFailedError):
        ProductSearchService(backend, config).search(SearchRequest(textQuery="jeans"))


def test_incomplete_facets_fail_the_search(backend, config):
    backend.raw_response = {"hits": {"total": {"value": 0, "relation": "eq"}, "hits": []}, "aggregations": {}}

    with pytest.raises(SearchFailedError):
        ProductSearchService(backend, config).search(SearchRequest(textQuery="jeans"))


@pytest.mark.parametrize("track_total_hits", [False, 0])
def test_service_refuses_disabled_hit_tracking(backend, config, track_total_hits):
    with pytest.raises(ValueError, match="track_total_hits"):
        ProductSearchService(backend, replace(config, track_total_hits=track_total_hits))


def test_threshold_is_passed_to_search(backend, config):
    backend.ranked_hits = [make_hit("1", "Levi's", "jeans", 50.0)]

    ProductSearchService(backend, replace(config, track_total_hits=10000)).search(SearchRequest(textQuery="jeans"))

    assert backend.calls[-1][1]["track_total_hits"] == 10000
