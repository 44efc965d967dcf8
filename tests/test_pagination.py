from app.schemas.common import PageParams, build_meta, resolve_sort


def test_build_meta() -> None:
    meta = build_meta(total=25, page=2, limit=10)
    assert meta.total_pages == 3
    assert meta.has_next_page is True
    assert meta.has_previous_page is True

    last = build_meta(total=25, page=3, limit=10)
    assert last.has_next_page is False


def test_build_meta_empty() -> None:
    meta = build_meta(total=0, page=1, limit=10)
    assert meta.total_pages == 0
    assert meta.has_next_page is False
    assert meta.has_previous_page is False


def test_meta_serializes_camel_case() -> None:
    dumped = build_meta(total=1, page=1, limit=10).model_dump(by_alias=True)
    assert set(dumped) == {"page", "limit", "total", "totalPages", "hasNextPage", "hasPreviousPage"}


def test_resolve_sort_allow_list() -> None:
    allowed = ("created_at", "likes_count")
    assert resolve_sort("likes_count", allowed) == "likes_count"
    assert resolve_sort("password; drop table", allowed) == "created_at"
    assert resolve_sort(None, allowed) == "created_at"


def test_page_params_offset() -> None:
    assert PageParams(page=3, limit=20).offset == 40
