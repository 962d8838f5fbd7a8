import pytest

from grabber.config.settings import config
from grabber.core.state import state

BASE = "https://www.example.com/watch"


class TestHealth:

    async def test_not_ready_before_bootstrap(self, client):
        response = await client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["ready"] is False
        assert data["message"]
        assert data["extractor_version"] is None

    async def test_ready(self, client, ready):
        response = await client.get("/api/health")

        data = response.json()
        assert data["ready"] is True
        assert data["extractor_version"] == "2025.01.01-fake"

    async def test_request_id_header(self, client):
        response = await client.get("/api/health", headers={"X-Request-ID": "abc"})
        assert response.headers["x-request-id"] == "abc"


class TestVideoInfo:

    async def test_preview(self, client, ready):
        response = await client.post("/api/video-info", json={"url": f"{BASE}/abc123"})

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Test: Video?!"
        assert data["thumbnail"] == "https://img.example.com/abc123.jpg"
        assert data["duration"] == 213
        assert data["author"] == "Example Channel"

        video = data["formats"]["video"]
        assert [f["format_id"] for f in video] == ["22", "18"]
        assert video[0] == {
            "format_id": "22",
            "quality": "720p",
            "format": "mp4",
            "size": "N/A",
            "resolution": "1280x720",
        }
        assert video[1]["size"] == "1 MB"

        audio = data["formats"]["audio"]
        assert [f["quality"] for f in audio] == ["160.5kbps", "128kbps", "48kbps"]
        assert audio[0] == {"format_id": "251", "quality": "160.5kbps", "format": "webm", "size": "4 MB"}
        assert "resolution" not in audio[0]

    @pytest.mark.parametrize("body", [{}, {"url": ""}, None])
    async def test_missing_url(self, client, ready, body):
        if body is None:
            response = await client.post("/api/video-info")
        else:
            response = await client.post("/api/video-info", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "url is required"}

    async def test_non_string_url(self, client, ready):
        response = await client.post("/api/video-info", json={"url": 123})

        assert response.status_code == 400
        assert response.json() == {"error": "url is invalid"}

    async def test_unparsable_body(self, client, ready):
        response = await client.post(
            "/api/video-info",
            content=b"{not json",
            headers={"Content-Type": "application/json", "Accept-Language": "vi"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "body không hợp lệ"}

    async def test_not_ready(self, client):
        response = await client.post("/api/video-info", json={"url": f"{BASE}/abc123"})

        assert response.status_code == 503
        assert "error" in response.json()
        assert "retry-after" in response.headers

    async def test_extractor_failure_is_generic(self, client, ready):
        response = await client.post("/api/video-info", json={"url": f"{BASE}/fail"})

        assert response.status_code == 500
        assert response.json() == {"error": "Could not get video information. Please check the link."}
        assert "Unsupported URL" not in response.text
        assert "Traceback" not in response.text

    @pytest.mark.parametrize("suffix", ["garbage", "noformats"])
    async def test_unusable_metadata(self, client, ready, suffix):
        response = await client.post("/api/video-info", json={"url": f"{BASE}/{suffix}"})
        assert response.status_code == 500

    async def test_localized_error(self, client, ready):
        response = await client.post(
            "/api/video-info",
            json={"url": f"{BASE}/fail"},
            headers={"Accept-Language": "vi-VN,vi;q=0.9"},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Không thể lấy thông tin video. Vui lòng kiểm tra lại link."}


class TestDownload:

    async def test_download(self, client, ready, monkeypatch):
        monkeypatch.setenv("FAKE_TOTAL_BYTES", "100000")

        response = await client.get("/api/download", params={"url": f"{BASE}/abc123", "format_id": "251"})

        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="Test Video.webm"'
        assert response.headers["content-type"] == "application/octet-stream"
        assert len(response.content) == 100000

    async def test_unknown_format_falls_back_to_mp4(self, client, ready):
        response = await client.get("/api/download", params={"url": f"{BASE}/abc123", "format_id": "nope"})

        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="Test Video.mp4"'

    @pytest.mark.parametrize("params,field", [
        ({}, "url"),
        ({"format_id": "18"}, "url"),
        ({"url": f"{BASE}/abc123"}, "format_id"),
    ])
    async def test_missing_params(self, client, ready, params, field):
        response = await client.get("/api/download", params=params)

        assert response.status_code == 400
        assert response.json() == {"error": f"{field} is required"}

    async def test_not_ready(self, client):
        assert not state.ready
        response = await client.get("/api/download", params={"url": f"{BASE}/abc123", "format_id": "18"})
        assert response.status_code == 503

    async def test_metadata_failure(self, client, ready):
        response = await client.get("/api/download", params={"url": f"{BASE}/fail", "format_id": "18"})

        assert response.status_code == 500
        assert "content-disposition" not in response.headers
        assert response.json() == {"error": "Could not get video information. Please check the link."}

    async def test_failure_before_first_byte(self, client, ready):
        response = await client.get("/api/download", params={"url": f"{BASE}/die-early", "format_id": "18"})

        assert response.status_code == 500
        assert "content-disposition" not in response.headers
        assert response.json() == {"error": "Could not download the video. Please try again."}


class FakeRedis:
    def __init__(self, result):
        self.result = result
        self.calls = []

    async def eval(self, script, numkeys, *args):
        self.calls.append(args)
        return self.result


class TestRateLimit:

    async def test_disabled_by_default(self, client, ready, monkeypatch):
        fake = FakeRedis([0, 30])
        monkeypatch.setattr(state, "redis", fake)

        response = await client.get("/api/health")

        assert response.status_code == 200
        assert fake.calls == []

    async def test_limit_exceeded(self, client, ready, monkeypatch):
        monkeypatch.setattr(config.rate_limit, "enabled", True)
        monkeypatch.setattr(state, "redis", FakeRedis([0, 30]))

        response = await client.post("/api/video-info", json={"url": f"{BASE}/abc123"})

        assert response.status_code == 429
        assert response.headers["retry-after"] == "30"
        assert "30" in response.json()["error"]

    async def test_allowed(self, client, ready, monkeypatch):
        fake = FakeRedis([1, 0])
        monkeypatch.setattr(config.rate_limit, "enabled", True)
        monkeypatch.setattr(state, "redis", fake)

        response = await client.post("/api/video-info", json={"url": f"{BASE}/abc123"})

        assert response.status_code == 200
        assert fake.calls[0][0].startswith("rate:")
