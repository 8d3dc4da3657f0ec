import pytest

from corekit.pagination import PaginatedResponse, Pagination


def test_empty_result_has_one_page():
    assert Pagination.build(0, 1, 10).total_pages == 1


@pytest.mark.parametrize("total", [1, 9, 10, 11, 57, 100])
@pytest.mark.parametrize("page_size", [1, 3, 10])
def test_total_pages_covers_total(total, page_size):
    pages = Pagination.build(total, 1, page_size).total_pages
    assert pages * page_size >= total
    assert (pages - 1) * page_size < total


def test_build_keeps_inputs():
    pagination = Pagination.build(42, 2, 5)
    assert (pagination.total, pagination.page, pagination.page_size) == (42, 2, 5)


@pytest.mark.parametrize("page_size", [0, -1])
def test_non_positive_page_size_rejected(page_size):
    with pytest.raises(ValueError):
        Pagination.build(5, 1, page_size)


def test_paginated_response_to_dict():
    pagination = Pagination.build(2, 1, 10)
    response = PaginatedResponse(data=[{"id": 1}, {"id": 2}], pagination=pagination)
    result = response.to_dict()
    assert result["data"] == [{"id": 1}, {"id": 2}]
    assert result["pagination"] == pagination.to_dict()
    assert set(result["pagination"]) == {"total", "page", "page_size", "total_pages"}


def test_default_response_is_empty():
    result = PaginatedResponse().to_dict()
    assert result["data"] == []
    assert result["pagination"]["total_pages"] == 1