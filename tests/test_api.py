import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.db import session as db_session
from app.db.base import Base
from app.models.user import User

SECRET = "api-test-secret-with-at-least-32-bytes"


def _token(user_id: int) -> dict[str, str]:
    token = jwt.encode({"sub": str(user_id)}, SECRET, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(tmp_path, monkeypatch):
    path = tmp_path / "api.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    with Session(sync_engine) as session:
        session.add_all(
            [
                User(id=1, username="alice", email="alice@example.com", display_name="Alice"),
                User(id=2, username="bob", email="bob@example.com", display_name="Bob"),
            ]
        )
        session.commit()
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    monkeypatch.setattr(db_session, "SessionLocal", factory)
    monkeypatch.setattr(settings, "jwt_secret", SECRET)

    from app.main import app
    from app.services.notifications import register_notification_listeners
    from app.services.ws import register_gateway_listeners

    register_notification_listeners()
    register_gateway_listeners()

    with TestClient(app) as test_client:
        yield test_client


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_write_requires_token(client) -> None:
    resp = client.post(f"{settings.api_prefix}/posts", json={"content": "hi"})
    assert resp.status_code == 401


def test_post_like_comment_flow(client) -> None:
    api = settings.api_prefix
    resp = client.post(f"{api}/posts", json={"content": "hello #world"}, headers=_token(1))
    assert resp.status_code == 201
    post = resp.json()
    assert post["hashtags"] == ["world"]

    resp = client.post(f"{api}/likes/resources/post/{post['id']}", headers=_token(2))
    assert resp.status_code == 200

    resp = client.post(
        f"{api}/comments/resources/post/{post['id']}",
        json={"content": "nice"},
        headers=_token(2),
    )
    assert resp.status_code == 201

    status = client.get(f"{api}/likes/resources/post/{post['id']}", headers=_token(2)).json()
    assert status["likes_count"] == 1
    assert status["is_liked"] is True

    listing = client.get(f"{api}/posts", params={"page": 1, "limit": 5}).json()
    assert listing["meta"]["totalPages"] == 1
    assert listing["meta"]["hasNextPage"] is False
    assert [p["id"] for p in listing["data"]] == [post["id"]]

    notes = client.get(f"{api}/notifications", headers=_token(1)).json()
    assert {n["kind"] for n in notes["data"]} == {"post.liked", "post.commented"}


def test_unknown_resource_type_is_400(client) -> None:
    resp = client.post(f"{settings.api_prefix}/likes/resources/planet/1", headers=_token(1))
    assert resp.status_code == 400


def test_listing_honours_sort_query(client) -> None:
    api = settings.api_prefix
    first = client.post(f"{api}/posts", json={"content": "first"}, headers=_token(1)).json()
    second = client.post(f"{api}/posts", json={"content": "second"}, headers=_token(1)).json()
    assert client.post(f"{api}/likes/resources/post/{first['id']}", headers=_token(2)).status_code == 200

    default = client.get(f"{api}/posts").json()
    assert [p["id"] for p in default["data"]] == [second["id"], first["id"]]

    camel = client.get(f"{api}/posts", params={"sortBy": "likes_count", "sortOrder": "DESC"}).json()
    assert [p["id"] for p in camel["data"]] == [first["id"], second["id"]]

    snake = client.get(f"{api}/posts", params={"sort_by": "likes_count", "sort_order": "ASC"}).json()
    assert [p["id"] for p in snake["data"]] == [second["id"], first["id"]]

    both = client.get(
        f"{api}/posts", params={"sortBy": "likes_count", "sortOrder": "DESC", "sort_order": "ASC"}
    ).json()
    assert [p["id"] for p in both["data"]] == [first["id"], second["id"]]
