import pytest
from fastapi import HTTPException

from app.models.social import Post
from app.schemas.collection import CollectionCreate, CollectionUpdate
from app.schemas.common import PageParams
from app.services import collections
from tests.factories import make_post

pytestmark = pytest.mark.anyio


async def _collection(db, owner_id: int, *, public: bool = True):
    return await collections.create_collection(
        db, user_id=owner_id, data=CollectionCreate(name="Favourites", is_public=public)
    )


async def test_create_collection_sanitizes_name(db, users) -> None:
    out = await collections.create_collection(
        db, user_id=users[0], data=CollectionCreate(name="<b>Reads</b>", description="weekend")
    )
    assert out.name == "&lt;b&gt;Reads&lt;/b&gt;"
    assert out.posts_count == 0
    assert out.is_public is False

    with pytest.raises(HTTPException) as exc:
        await collections.create_collection(db, user_id=users[0], data=CollectionCreate(name="<script>x</script>"))
    assert exc.value.status_code == 400


async def test_add_and_remove_posts_keeps_count(db, users, session_factory) -> None:
    owner = users[0]
    coll = await _collection(db, owner)
    first = await make_post(session_factory, users[1])
    second = await make_post(session_factory, users[1])

    await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=first)
    out = await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=second)
    assert out.posts_count == 2

    with pytest.raises(HTTPException) as exc:
        await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=first)
    assert exc.value.detail == "Post already in collection"

    out = await collections.remove_post_from_collection(db, user_id=owner, collection_id=coll.id, post_id=first)
    assert out.posts_count == 1
    assert await collections.posts_count(db, coll.id) == 1

    with pytest.raises(HTTPException) as exc:
        await collections.remove_post_from_collection(db, user_id=owner, collection_id=coll.id, post_id=first)
    assert exc.value.detail == "Post not found in collection"


async def test_add_rejects_drafts_archived_and_missing(db, users, session_factory) -> None:
    owner = users[0]
    coll = await _collection(db, owner)
    draft = await make_post(session_factory, owner, is_draft=True)
    archived = await make_post(session_factory, owner, is_archived=True)

    with pytest.raises(HTTPException) as exc:
        await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=draft)
    assert exc.value.detail == "Cannot add draft posts to collections"

    with pytest.raises(HTTPException) as exc:
        await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=archived)
    assert exc.value.detail == "Cannot add archived posts to collections"

    with pytest.raises(HTTPException) as exc:
        await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=9999)
    assert exc.value.status_code == 404


async def test_only_owner_can_modify(db, users, session_factory) -> None:
    coll = await _collection(db, users[0])
    post_id = await make_post(session_factory, users[0])

    with pytest.raises(HTTPException) as exc:
        await collections.add_post_to_collection(db, user_id=users[1], collection_id=coll.id, post_id=post_id)
    assert exc.value.status_code == 404

    with pytest.raises(HTTPException) as exc:
        await collections.delete_collection(db, user_id=users[1], collection_id=coll.id)
    assert exc.value.status_code == 404


async def test_private_collection_hidden_from_others(db, users, session_factory) -> None:
    owner, other = users[0], users[1]
    private = await _collection(db, owner, public=False)
    public = await _collection(db, owner, public=True)
    post_id = await make_post(session_factory, owner)
    await collections.add_post_to_collection(db, user_id=owner, collection_id=private.id, post_id=post_id)

    with pytest.raises(HTTPException) as exc:
        await collections.get_collection_posts(db, collection_id=private.id, params=PageParams(), viewer_id=other)
    assert exc.value.status_code == 403

    page = await collections.get_collection_posts(db, collection_id=private.id, params=PageParams(), viewer_id=owner)
    assert [p.id for p in page.data] == [post_id]

    visible = await collections.get_user_collections(db, owner_id=owner, viewer_id=other)
    assert [c.id for c in visible] == [public.id]
    mine = await collections.get_user_collections(db, owner_id=owner, viewer_id=owner)
    assert {c.id for c in mine} == {private.id, public.id}
    assert {c.id: c.posts_count for c in mine}[private.id] == 1


async def test_collection_posts_sorted_and_filtered(db, users, session_factory) -> None:
    owner = users[0]
    coll = await _collection(db, owner)
    quiet = await make_post(session_factory, users[1], likes_count=1)
    loud = await make_post(session_factory, users[1], likes_count=9)
    hidden = await make_post(session_factory, users[1], likes_count=20)
    for post_id in (quiet, loud, hidden):
        await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=post_id)

    async with session_factory() as session:
        row = await session.get(Post, hidden)
        row.is_archived = True
        await session.commit()

    params = PageParams(sort_by="likes_count", sort_order="DESC")
    page = await collections.get_collection_posts(db, collection_id=coll.id, params=params)
    assert [p.id for p in page.data] == [loud, quiet]
    assert page.meta.total == 2


async def test_update_and_delete_collection(db, users, session_factory) -> None:
    owner = users[0]
    coll = await _collection(db, owner, public=False)
    post_id = await make_post(session_factory, users[1])
    await collections.add_post_to_collection(db, user_id=owner, collection_id=coll.id, post_id=post_id)

    out = await collections.update_collection(
        db, user_id=owner, collection_id=coll.id, data=CollectionUpdate(name="Renamed", is_public=True)
    )
    assert out.name == "Renamed"
    assert out.is_public is True
    assert out.posts_count == 1

    await collections.delete_collection(db, user_id=owner, collection_id=coll.id)
    assert await collections.get_user_collections(db, owner_id=owner, viewer_id=owner) == []
    assert await collections.posts_count(db, coll.id) == 0
