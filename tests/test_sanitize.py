from app.services.sanitize import sanitize_optional_text, sanitize_text, sanitize_url


def test_sanitize_text_strips_script_blocks() -> None:
    assert sanitize_text("<script>alert(1)</script>hello") == "hello"
    assert sanitize_text("<style>p{}</style> <iframe src='x'></iframe>ok") == "ok"


def test_sanitize_text_escapes_remaining_markup() -> None:
    assert sanitize_text("<b>bold</b>") == "&lt;b&gt;bold&lt;/b&gt;"


def test_sanitize_text_strips_handlers_and_protocols() -> None:
    assert sanitize_text('<img src=x onerror="alert(1)">') == "&lt;img src=x&gt;"
    assert sanitize_text("javascript:alert(1)") == "alert(1)"
    assert sanitize_text("data:text/html,<p>") == ",&lt;p&gt;"


def test_sanitize_text_keeps_plain_text() -> None:
    assert sanitize_text("  a + b = c  ") == "a + b = c"
    assert sanitize_optional_text(None) is None
    assert sanitize_optional_text("<script></script>") is None


def test_sanitize_url() -> None:
    assert sanitize_url(" https://example.com/a.png ") == "https://example.com/a.png"
    assert sanitize_url("javascript:alert(1)") == "alert(1)"
    assert sanitize_url("ftp://example.com/file") == ""
    assert sanitize_url("<b>https://example.com</b>") == "https://example.com"
