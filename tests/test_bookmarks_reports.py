import pytest
from fastapi import HTTPException

from app.models.social import Post
from app.services import analytics, bookmarks, reports
from tests.factories import load, make_post

pytestmark = pytest.mark.anyio


async def test_bookmark_and_duplicate(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    row = await bookmarks.bookmark_post(db, user_id=users[1], post_id=post_id, note="read later")
    assert row.note == "read later"

    with pytest.raises(HTTPException) as exc:
        await bookmarks.bookmark_post(db, user_id=users[1], post_id=post_id)
    assert exc.value.detail == "Post already bookmarked"

    await analytics.drain_background()
    assert (await load(session_factory, Post, post_id)).bookmarks_count == 1


async def test_bookmark_missing_post(db, users) -> None:
    with pytest.raises(HTTPException) as exc:
        await bookmarks.bookmark_post(db, user_id=users[0], post_id=42)
    assert exc.value.status_code == 404


async def test_unbookmark(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    with pytest.raises(HTTPException) as exc:
        await bookmarks.unbookmark_post(db, user_id=users[1], post_id=post_id)
    assert exc.value.status_code == 404
    assert exc.value.detail == "Bookmark not found"

    await bookmarks.bookmark_post(db, user_id=users[1], post_id=post_id)
    await bookmarks.unbookmark_post(db, user_id=users[1], post_id=post_id)
    await analytics.drain_background()
    assert (await load(session_factory, Post, post_id)).bookmarks_count == 0


async def test_report_post(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    row = await reports.report_post(db, user_id=users[1], post_id=post_id, reason="spam", description="ads")

    assert row.status == "pending"
    assert (await load(session_factory, Post, post_id)).reports_count == 1

    with pytest.raises(HTTPException) as exc:
        await reports.report_post(db, user_id=users[1], post_id=post_id, reason="other")
    assert exc.value.detail == "You have already reported this post"


async def test_report_validation(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])

    with pytest.raises(HTTPException) as exc:
        await reports.report_post(db, user_id=users[1], post_id=post_id, reason="boring")
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        await reports.report_post(db, user_id=users[0], post_id=post_id, reason="spam")
    assert exc.value.detail == "You cannot report your own post"

    with pytest.raises(HTTPException) as exc:
        await reports.report_post(db, user_id=users[1], post_id=post_id + 100, reason="spam")
    assert exc.value.status_code == 404
