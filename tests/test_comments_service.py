import pytest
from fastapi import HTTPException
from sqlalchemy import select

from app.models.media import Video
from app.models.social import Comment, Post
from app.services import analytics, comments
from app.services.events import ResourceCommented, event_bus
from tests.factories import load, make_post

pytestmark = pytest.mark.anyio


async def _video(factory, owner_id: int) -> int:
    async with factory() as session:
        row = Video(owner_id=owner_id, title="clip", video_url="https://cdn.example.com/v.mp4")
        session.add(row)
        await session.commit()
        return row.id


async def test_create_comment_and_reply(db, users, session_factory) -> None:
    alice, bob = users[0], users[1]
    post_id = await make_post(session_factory, alice)

    top = await comments.create_comment(db, user_id=bob, resource_type="post", resource_id=post_id, content="first!")
    reply = await comments.create_comment(
        db, user_id=alice, resource_type="post", resource_id=post_id, content="thanks", parent_comment_id=top.id
    )
    await analytics.drain_background()

    assert reply.parent_comment_id == top.id
    assert (await load(session_factory, Comment, top.id)).replies_count == 1
    assert (await load(session_factory, Post, post_id)).comments_count == 2


async def test_comment_on_video(db, users, session_factory) -> None:
    video_id = await _video(session_factory, users[0])
    row = await comments.create_comment(
        db, user_id=users[1], resource_type="video", resource_id=video_id, content="wow"
    )
    assert row.resource_type == "video"
    assert (await load(session_factory, Video, video_id)).comments_count == 1


async def test_comment_rejected_when_disabled(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0], allow_comments=False)
    with pytest.raises(HTTPException) as exc:
        await comments.create_comment(db, user_id=users[1], resource_type="post", resource_id=post_id, content="hi")
    assert exc.value.status_code == 403


async def test_comment_on_missing_resource(db, users) -> None:
    with pytest.raises(HTTPException) as exc:
        await comments.create_comment(db, user_id=users[0], resource_type="post", resource_id=404, content="hi")
    assert exc.value.status_code == 404


async def test_comment_on_unknown_resource_type(db, users) -> None:
    with pytest.raises(HTTPException) as exc:
        await comments.create_comment(db, user_id=users[0], resource_type="article", resource_id=1, content="hi")
    assert exc.value.status_code == 400


async def test_comment_content_is_sanitized(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    row = await comments.create_comment(
        db, user_id=users[1], resource_type="post", resource_id=post_id, content="<b>hey</b><script>x()</script>"
    )
    assert row.content == "&lt;b&gt;hey&lt;/b&gt;"

    with pytest.raises(HTTPException) as exc:
        await comments.create_comment(
            db, user_id=users[1], resource_type="post", resource_id=post_id, content="<script>x()</script>"
        )
    assert exc.value.status_code == 400


async def test_reply_must_target_same_resource(db, users, session_factory) -> None:
    alice = users[0]
    first = await make_post(session_factory, alice)
    second = await make_post(session_factory, alice)
    top = await comments.create_comment(db, user_id=alice, resource_type="post", resource_id=first, content="a")

    with pytest.raises(HTTPException) as exc:
        await comments.create_comment(
            db, user_id=alice, resource_type="post", resource_id=second, content="b", parent_comment_id=top.id
        )
    assert exc.value.status_code == 404


async def test_replies_are_one_level_deep(db, users, session_factory) -> None:
    alice = users[0]
    post_id = await make_post(session_factory, alice)
    top = await comments.create_comment(db, user_id=alice, resource_type="post", resource_id=post_id, content="a")
    reply = await comments.create_comment(
        db, user_id=alice, resource_type="post", resource_id=post_id, content="b", parent_comment_id=top.id
    )
    with pytest.raises(HTTPException) as exc:
        await comments.create_comment(
            db, user_id=alice, resource_type="post", resource_id=post_id, content="c", parent_comment_id=reply.id
        )
    assert exc.value.status_code == 400


async def test_comment_event_only_for_other_users(db, users, session_factory) -> None:
    alice, bob = users[0], users[1]
    post_id = await make_post(session_factory, alice)
    seen = []

    async def handler(event):
        seen.append(event)

    event_bus.subscribe(ResourceCommented, handler)
    await comments.create_comment(db, user_id=alice, resource_type="post", resource_id=post_id, content="self")
    await comments.create_comment(db, user_id=bob, resource_type="post", resource_id=post_id, content="hi")

    assert len(seen) == 1
    assert seen[0].owner_id == alice
    assert seen[0].actor_id == bob
    assert seen[0].name == "post.commented"


async def test_get_comments_batches_and_truncates_replies(db, users, session_factory) -> None:
    alice, bob = users[0], users[1]
    post_id = await make_post(session_factory, alice)
    async with session_factory() as session:
        top = Comment(resource_type="post", resource_id=post_id, author_id=bob, content="top")
        other = Comment(resource_type="post", resource_id=post_id, author_id=bob, content="other")
        session.add_all([top, other])
        await session.flush()
        session.add_all(
            [
                Comment(
                    resource_type="post",
                    resource_id=post_id,
                    author_id=alice,
                    content=f"r{i}",
                    parent_comment_id=top.id,
                )
                for i in range(12)
            ]
        )
        await session.commit()
        top_id = top.id

    page = await comments.get_comments(db, resource_type="post", resource_id=post_id, page=1, limit=20)
    assert page.meta.total == 2
    by_id = {c.id: c for c in page.data}
    assert len(by_id[top_id].replies) == comments.MAX_REPLIES_PER_COMMENT
    assert by_id[top_id].replies[0].content == "r0"


async def test_update_comment_requires_author(db, users, session_factory) -> None:
    alice, bob = users[0], users[1]
    post_id = await make_post(session_factory, alice)
    row = await comments.create_comment(db, user_id=bob, resource_type="post", resource_id=post_id, content="old")

    with pytest.raises(HTTPException) as exc:
        await comments.update_comment(db, user_id=alice, comment_id=row.id, content="new")
    assert exc.value.status_code == 403

    updated = await comments.update_comment(db, user_id=bob, comment_id=row.id, content="new")
    assert updated.content == "new"
    assert updated.is_edited is True


async def test_delete_comment_cascades_to_replies(db, users, session_factory) -> None:
    alice, bob = users[0], users[1]
    post_id = await make_post(session_factory, alice)
    top = await comments.create_comment(db, user_id=bob, resource_type="post", resource_id=post_id, content="top")
    for text in ("r1", "r2"):
        await comments.create_comment(
            db, user_id=alice, resource_type="post", resource_id=post_id, content=text, parent_comment_id=top.id
        )
    await analytics.drain_background()
    assert (await load(session_factory, Post, post_id)).comments_count == 3

    with pytest.raises(HTTPException) as exc:
        await comments.delete_comment(db, user_id=alice, comment_id=top.id)
    assert exc.value.status_code == 403

    removed = await comments.delete_comment(db, user_id=bob, comment_id=top.id)
    await analytics.drain_background()
    assert removed == 3
    assert (await load(session_factory, Post, post_id)).comments_count == 0

    async with session_factory() as session:
        live = (await session.execute(select(Comment).where(Comment.deleted_at.is_(None)))).scalars().all()
    assert live == []
    with pytest.raises(HTTPException) as exc:
        await comments.get_comment(db, top.id)
    assert exc.value.status_code == 404


async def test_delete_reply_decrements_parent_once(db, users, session_factory) -> None:
    alice = users[0]
    post_id = await make_post(session_factory, alice)
    top = await comments.create_comment(db, user_id=alice, resource_type="post", resource_id=post_id, content="top")
    reply = await comments.create_comment(
        db, user_id=alice, resource_type="post", resource_id=post_id, content="r", parent_comment_id=top.id
    )
    await analytics.drain_background()

    assert await comments.delete_comment(db, user_id=alice, comment_id=reply.id) == 1
    await analytics.drain_background()

    assert (await load(session_factory, Comment, top.id)).replies_count == 0
    assert (await load(session_factory, Post, post_id)).comments_count == 1
