from app.services.posts import determine_post_type, is_video_url


def test_text_when_no_media() -> None:
    assert determine_post_type(None, []) == "text"


def test_single_category() -> None:
    assert determine_post_type("https://cdn/x/photo.JPG", []) == "image"
    assert determine_post_type(None, ["https://cdn/x/clip.mp4"]) == "video"
    assert determine_post_type(None, ["https://cdn/x/report.pdf"]) == "document"


def test_mixed_when_two_categories() -> None:
    assert determine_post_type("https://cdn/a.png", ["https://cdn/b.webm"]) == "mixed"
    assert determine_post_type(None, ["https://cdn/a.pdf", "https://cdn/b.gif"]) == "mixed"


def test_unknown_extension_is_text() -> None:
    assert determine_post_type(None, ["https://cdn/a.bin"]) == "text"


def test_is_video_url() -> None:
    assert is_video_url("https://cdn/a.MOV")
    assert not is_video_url("https://cdn/a.png")
    assert not is_video_url(None)
