from webroot_server.mime import DEFAULT_MIME_TYPE, mime_for
from webroot_server.resolver import ALLOWED_EXTENSIONS


def test_html_is_utf8_text():
    assert mime_for(".html") == "text/html; charset=utf-8"


def test_lookup_is_case_insensitive():
    assert mime_for(".PNG") == "image/png"
    assert mime_for(".Jpg") == "image/jpeg"


def test_unmapped_extension_is_octet_stream():
    assert mime_for(".wasm") == DEFAULT_MIME_TYPE
    assert mime_for("") == "application/octet-stream"


def test_every_allowed_extension_has_a_specific_type():
    for extension in ALLOWED_EXTENSIONS:
        assert mime_for(extension) != DEFAULT_MIME_TYPE
