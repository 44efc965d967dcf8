import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

from app.models.social import Comment, Post, Reaction
from app.services import analytics, reactions, shares
from app.services.events import ResourceShared, event_bus
from tests.factories import load, make_post

pytestmark = pytest.mark.anyio


async def test_share_bumps_counter_and_publishes(db, users, session_factory) -> None:
    alice, bob = users[0], users[1]
    post_id = await make_post(session_factory, alice)
    seen = []

    async def handler(event):
        seen.append(event)

    event_bus.subscribe(ResourceShared, handler)
    row = await shares.share_resource(
        db, user_id=bob, resource_type="post", resource_id=post_id, comment="<i>look</i>"
    )
    await analytics.drain_background()

    assert row.comment == "&lt;i&gt;look&lt;/i&gt;"
    assert (await load(session_factory, Post, post_id)).shares_count == 1
    assert await shares.has_shared(db, user_id=bob, resource_type="post", resource_id=post_id)
    assert [e.name for e in seen] == ["post.shared"]
    assert seen[0].payload()["share_id"] == row.id


async def test_cannot_share_own_post(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    with pytest.raises(HTTPException) as exc:
        await shares.share_resource(db, user_id=users[0], resource_type="post", resource_id=post_id)
    assert exc.value.status_code == 400
    assert exc.value.detail == "You cannot share your own content"


async def test_duplicate_share_rejected(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    await shares.share_resource(db, user_id=users[1], resource_type="post", resource_id=post_id)
    with pytest.raises(HTTPException) as exc:
        await shares.share_resource(db, user_id=users[1], resource_type="post", resource_id=post_id)
    assert exc.value.detail == "Post already shared"
    assert await shares.get_shares_count(db, resource_type="post", resource_id=post_id) == 1


async def test_unshare(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    with pytest.raises(HTTPException) as exc:
        await shares.unshare_resource(db, user_id=users[1], resource_type="post", resource_id=post_id)
    assert exc.value.detail == "Post not shared by user"

    await shares.share_resource(db, user_id=users[1], resource_type="post", resource_id=post_id)
    await shares.unshare_resource(db, user_id=users[1], resource_type="post", resource_id=post_id)
    await analytics.drain_background()
    assert (await load(session_factory, Post, post_id)).shares_count == 0


async def test_comments_are_not_shareable(db, users) -> None:
    with pytest.raises(HTTPException) as exc:
        await shares.share_resource(db, user_id=users[0], resource_type="comment", resource_id=1)
    assert exc.value.status_code == 400


@pytest.mark.parametrize(
    ("post_id", "comment_id"),
    [(None, None), (1, 1)],
)
async def test_reaction_needs_exactly_one_target(db, users, post_id, comment_id) -> None:
    with pytest.raises(HTTPException) as exc:
        await reactions.react(db, user_id=users[0], reaction_type="love", post_id=post_id, comment_id=comment_id)
    assert exc.value.status_code == 400


async def test_invalid_reaction_type(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    with pytest.raises(HTTPException) as exc:
        await reactions.react(db, user_id=users[1], reaction_type="meh", post_id=post_id)
    assert exc.value.status_code == 400


async def test_reacting_again_changes_type_in_place(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    first = await reactions.react(db, user_id=users[1], reaction_type="love", post_id=post_id)
    second = await reactions.react(db, user_id=users[1], reaction_type="wow", post_id=post_id)

    assert first.id == second.id
    assert second.reaction_type == "wow"
    async with session_factory() as session:
        total = (await session.execute(select(func.count()).select_from(Reaction))).scalar_one()
    assert total == 1


async def test_react_to_missing_targets(db, users) -> None:
    with pytest.raises(HTTPException) as exc:
        await reactions.react(db, user_id=users[0], reaction_type="like", post_id=999)
    assert exc.value.status_code == 404
    assert exc.value.detail == "Post not found"

    with pytest.raises(HTTPException) as exc:
        await reactions.react(db, user_id=users[0], reaction_type="like", comment_id=999)
    assert exc.value.detail == "Comment not found"


async def test_react_to_comment_and_remove(db, users, session_factory) -> None:
    post_id = await make_post(session_factory, users[0])
    async with session_factory() as session:
        comment = Comment(resource_type="post", resource_id=post_id, author_id=users[0], content="nice")
        session.add(comment)
        await session.commit()
        comment_id = comment.id

    row = await reactions.react(db, user_id=users[1], reaction_type="laugh", comment_id=comment_id)
    assert row.comment_id == comment_id and row.post_id is None

    await reactions.remove_reaction(db, user_id=users[1], comment_id=comment_id)
    with pytest.raises(HTTPException) as exc:
        await reactions.remove_reaction(db, user_id=users[1], comment_id=comment_id)
    assert exc.value.status_code == 404
    assert exc.value.detail == "Reaction not found"
