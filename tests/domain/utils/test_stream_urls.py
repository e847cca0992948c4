"""Tests for stream URL derivation."""

from streamctl.domain.utils.stream_urls import build_source_urls, build_stream_urls, playback_hls_url

HOST = "stream.example.com"
LOGIN = "parish_42"


class TestBuildStreamUrls:
    def test_derived_urls(self):
        urls = build_stream_urls(HOST, LOGIN, "playlist_schedule.smil", "https://player.example.com/", "pl-1")

        assert urls.playback_hls == "https://stream.example.com/parish_42/parish_42/playlist.m3u8"
        assert urls.direct_hls == "https://stream.example.com/parish_42/smil:playlist_schedule.smil/playlist.m3u8"
        assert urls.direct_rtmp == "rtmp://stream.example.com:1935/parish_42/smil:playlist_schedule.smil"
        assert urls.iframe == "https://player.example.com/player/iframe?login=parish_42&player=1&playlist=pl-1"

    def test_iframe_without_playlist(self):
        urls = build_stream_urls(HOST, LOGIN, "m.smil", "https://player.example.com")

        assert urls.iframe.endswith("?login=parish_42&player=1")

    def test_hints_override_known_fields_only(self):
        """Test provisioner hints replace derived URLs, ignoring unknown or empty keys."""
        urls = build_stream_urls(
            HOST,
            LOGIN,
            "m.smil",
            "https://player.example.com",
            hints={"direct_hls": "https://cdn.example.com/live.m3u8", "iframe": "", "thumbnail": "x"},
        )

        assert urls.direct_hls == "https://cdn.example.com/live.m3u8"
        assert urls.iframe.startswith("https://player.example.com/player/iframe")
        assert "thumbnail" not in urls.model_dump()


class TestBuildSourceUrls:
    def test_source_urls(self):
        urls = build_source_urls(HOST, LOGIN, rtmp_port=1936)

        assert urls.hls == playback_hls_url(HOST, LOGIN)
        assert urls.rtmp == "rtmp://stream.example.com:1936/parish_42/parish_42"
        assert urls.rtmps == "rtmps://stream.example.com:443/parish_42/parish_42"
        assert urls.recommended == "hls"
