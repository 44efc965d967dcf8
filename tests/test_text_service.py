from app.services.text import extract_hashtags, extract_mentions


def test_extract_hashtags_and_mentions() -> None:
    text = "Reading #Books #books with @Alice and @bob_2 about #AI_2026"
    assert extract_hashtags(text) == ["books", "ai_2026"]
    assert extract_mentions(text) == ["alice", "bob_2"]


def test_extract_keeps_first_seen_order() -> None:
    assert extract_hashtags("#b #a #B #c #a") == ["b", "a", "c"]


def test_extract_on_empty_text() -> None:
    assert extract_hashtags("") == []
    assert extract_mentions(None) == []
