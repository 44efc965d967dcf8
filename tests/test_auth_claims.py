import jwt
import pytest
from fastapi import HTTPException

from app.core.config import settings
from app.services.auth import _decode_token, _parse_payload


def test_parse_payload_success() -> None:
    user = _parse_payload(
        {
            "sub": "123",
            "email": "U@Example.com",
            "display_name": "User",
            "roles": ["Member"],
        }
    )
    assert user.user_id == 123
    assert user.email == "u@example.com"
    assert user.roles == ["member"]


def test_parse_payload_requires_sub() -> None:
    with pytest.raises(HTTPException) as exc:
        _parse_payload({"email": "u@example.com"})
    assert exc.value.status_code == 401


def test_parse_payload_ignores_non_list_roles() -> None:
    user = _parse_payload({"sub": 7, "roles": "admin"})
    assert user.roles == []
    assert user.display_name == "7"


def test_decode_token_round_trip(monkeypatch) -> None:
    monkeypatch.setattr(settings, "jwt_secret", "test-secret-with-at-least-32-bytes!!")
    token = jwt.encode({"sub": "5"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    assert _parse_payload(_decode_token(token)).user_id == 5


def test_decode_token_rejects_bad_signature(monkeypatch) -> None:
    monkeypatch.setattr(settings, "jwt_secret", "test-secret-with-at-least-32-bytes!!")
    token = jwt.encode({"sub": "5"}, "another-secret-with-at-least-32-bytes", algorithm="HS256")
    with pytest.raises(HTTPException) as exc:
        _decode_token(token)
    assert exc.value.status_code == 401
