import pytest

from grabber.i18n import i18n
from grabber.utils.filename import build_download_filename, content_disposition, sanitize_title
from grabber.utils.locale import get_locale, safe_url_for_log


class TestSanitizeTitle:

    @pytest.mark.parametrize("title,expected", [
        ("Test: Video?!", "Test Video"),
        ("my_clip - part 2", "my_clip - part 2"),
        ('a/b\\c"d<e>f|g*h', "abcdefgh"),
        ("tabs\tand\nnewlines", "tabs and newlines"),
        ("Tiếng Việt!", "Tiếng Việt"),
        ("?!?", ""),
        ("CON", "_CON"),
    ])
    def test_sanitize(self, title, expected):
        assert sanitize_title(title) == expected

    def test_length_capped(self):
        assert len(sanitize_title("a" * 500)) == 200


class TestDownloadFilename:

    def test_title_and_extension(self):
        assert build_download_filename("Test: Video?!", "webm", "u") == "Test Video.webm"

    def test_default_extension(self):
        assert build_download_filename("Clip", None, "u") == "Clip.mp4"

    def test_empty_title_fallback_is_stable(self):
        first = build_download_filename("!!!", "mp4", "https://x.test/v")
        assert first == build_download_filename("???", "mp4", "https://x.test/v")
        assert first.startswith("video_")


class TestContentDisposition:

    def test_ascii(self):
        assert content_disposition("Test Video.mp4") == 'attachment; filename="Test Video.mp4"'

    def test_non_ascii_adds_rfc5987(self):
        value = content_disposition("Tiếng Việt.mp4")

        assert value.startswith('attachment; filename="Ting Vit.mp4"')
        assert "filename*=UTF-8''Ti%E1%BA%BFng%20Vi%E1%BB%87t.mp4" in value
        value.encode("latin-1")

    def test_fully_non_ascii(self):
        value = content_disposition("ビデオ.mp4")
        assert value.startswith('attachment; filename="download.mp4"')


class TestLocale:

    @pytest.mark.parametrize("header,expected", [
        (None, "en"),
        ("vi-VN,vi;q=0.9,en;q=0.8", "vi"),
        ("fr-FR,en;q=0.5", "en"),
        ("de", "en"),
    ])
    def test_get_locale(self, header, expected):
        assert get_locale(header) == expected

    def test_safe_url_drops_query(self):
        assert safe_url_for_log("https://x.test/watch?v=secret") == "https://x.test/watch"

    def test_i18n_fallback_to_default_locale(self):
        assert i18n.get("log.starting_stream", locale="vi", url="u", format_id="18") == "Starting stream: u format=18"
        assert i18n.get("no.such.key") == "no.such.key"
        assert i18n.get("error.missing_field", locale="vi", field="url") == "Thiếu url"
