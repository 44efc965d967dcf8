from __future__ import annotations

from app.models.social import Post
from app.models.user import Follow


async def make_post(factory, author_id: int, **fields) -> int:
    async with factory() as session:
        post = Post(author_id=author_id, content=fields.pop("content", "hello"), **fields)
        session.add(post)
        await session.commit()
        return post.id


async def follow(factory, follower_id: int, following_id: int) -> None:
    async with factory() as session:
        session.add(Follow(follower_id=follower_id, following_id=following_id))
        await session.commit()


async def load(factory, model, row_id: int):
    async with factory() as session:
        return await session.get(model, row_id)
