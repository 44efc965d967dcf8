import pytest
from sqlalchemy import select

from app.models.analytics import UserAnalytics
from app.models.media import Video
from app.models.social import Comment
from app.services import analytics, comments, posts
from app.services.likes import like_resource
from app.services.resources import ResourceType
from tests.factories import follow, make_post

pytestmark = pytest.mark.anyio


async def _rollup(factory, user_id: int) -> UserAnalytics:
    async with factory() as session:
        return (await session.execute(select(UserAnalytics).where(UserAnalytics.user_id == user_id))).scalar_one()


async def test_user_analytics_upserts_rollup(db, users, session_factory) -> None:
    alice, bob, carol = users
    first = await make_post(session_factory, alice, views_count=4)
    await make_post(session_factory, alice, views_count=6)
    await follow(session_factory, bob, alice)
    await follow(session_factory, carol, alice)
    await follow(session_factory, alice, bob)
    async with session_factory() as session:
        session.add(Video(owner_id=alice, title="clip", video_url="https://cdn.example.com/v.mp4"))
        session.add(Comment(resource_type="post", resource_id=first, author_id=bob, content="nice"))
        await session.commit()
    await like_resource(db, user_id=bob, resource_type="post", resource_id=first)
    await analytics.drain_background()

    row = await analytics.calculate_user_analytics(db, alice)
    assert row.user_id == alice
    assert (row.followers, row.following) == (2, 1)
    assert (row.posts, row.videos) == (2, 1)
    assert (row.likes_received, row.comments_received, row.shares_received) == (1, 1, 0)
    assert row.views_received == 10
    assert row.engagement_rate == 20.0

    again = await analytics.calculate_user_analytics(db, alice)
    assert again.id == row.id
    async with session_factory() as session:
        assert len((await session.execute(select(UserAnalytics))).scalars().all()) == 1


async def test_deleting_post_refreshes_author_rollup(db, users, session_factory) -> None:
    alice = users[0]
    keep = await make_post(session_factory, alice)
    drop = await make_post(session_factory, alice)
    await analytics.calculate_user_analytics(db, alice)
    assert (await _rollup(session_factory, alice)).posts == 2

    await posts.delete_post(db, user_id=alice, post_id=drop)

    row = await _rollup(session_factory, alice)
    assert row.posts == 1
    assert (await posts.find_one(db, post_id=keep)).id == keep


async def test_deleting_comment_refreshes_author_rollup(db, users, session_factory) -> None:
    alice, bob = users[0], users[1]
    post_id = await make_post(session_factory, alice)
    row = await comments.create_comment(db, user_id=bob, resource_type="post", resource_id=post_id, content="hey")
    await analytics.drain_background()
    await analytics.calculate_user_analytics(db, bob)
    assert (await _rollup(session_factory, bob)).comments_written == 1

    await comments.delete_comment(db, user_id=bob, comment_id=row.id)
    await analytics.drain_background()

    assert (await _rollup(session_factory, bob)).comments_written == 0


async def test_recalculation_drops_cached_post(db, users, session_factory, fake_redis) -> None:
    post_id = await make_post(session_factory, users[0])
    assert (await posts.find_one(db, post_id=post_id)).comments_count == 0
    async with session_factory() as session:
        session.add(Comment(resource_type="post", resource_id=post_id, author_id=users[1], content="late"))
        await session.commit()

    await analytics.recalculate_resource(db, ResourceType.POST, post_id)

    assert not any(key.endswith(f"post:{post_id}") for key in fake_redis.values)
    assert (await posts.find_one(db, post_id=post_id)).comments_count == 1


async def test_recalculation_drops_cached_video_tag(db, users, session_factory, fake_redis) -> None:
    async with session_factory() as session:
        video = Video(owner_id=users[0], title="clip", video_url="https://cdn.example.com/v.mp4")
        session.add(video)
        await session.commit()
        video_id = video.id
    await fake_redis.set(f"engagement:video:{video_id}", "{}")
    await fake_redis.sadd(f"engagement:tag:video:{video_id}", f"engagement:video:{video_id}")

    out = await analytics.calculate_video_analytics(db, video_id)

    assert out == {"id": video_id, "comments": 0}
    assert f"engagement:video:{video_id}" not in fake_redis.values
