"""Tests for the Wowza REST Remote Control Channel."""

import json

import httpx
import pytest

from streamctl.schemas import MediaServerRef
from streamctl.services.integrations.wowza_service import PUSH_METHOD, WowzaRestChannel, split_push_target
from streamctl.utils.app_errors import AppError, AppErrorCode, RemoteTimeoutError

SERVER = MediaServerRef(server_id="srv-1", host="wowza.local", api_user="api", api_password="secret")
APP = "login_owner_1"
APP_URL = f"http://wowza.local:8087/v2/servers/_defaultServer_/vhosts/_defaultVHost_/applications/{APP}"


def make_channel(handler) -> tuple[WowzaRestChannel, list[httpx.Request]]:
    """Build a non-demo channel whose requests are answered by `handler` and recorded."""
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return WowzaRestChannel(timeout=1, demo_mode=False, transport=httpx.MockTransport(_handler)), seen


class TestSplitPushTarget:
    def test_rtmp_with_stream_key(self):
        fields = split_push_target("rtmp://a.rtmp.youtube.com/live2/", "abcd-efgh")

        assert fields == {
            "host": "a.rtmp.youtube.com",
            "port": 1935,
            "application": "live2",
            "streamName": "abcd-efgh",
            "sendSSL": False,
        }

    def test_rtmps_defaults_to_443(self):
        fields = split_push_target("rtmps://live-api-s.facebook.com/rtmp/", "FB-1")

        assert fields["port"] == 443
        assert fields["sendSSL"] is True
        assert fields["application"] == "rtmp"

    def test_stream_name_taken_from_path_without_key(self):
        """Test a full URL without key uses its last segment as the stream name."""
        fields = split_push_target("rtmp://ingest.example.org:1940/app/inst/mystream", None)

        assert fields["port"] == 1940
        assert fields["application"] == "app/inst"
        assert fields["streamName"] == "mystream"


class TestCommands:
    """Tests for activate, deactivate and the reply classification."""

    async def test_activate_success(self):
        channel, seen = make_channel(lambda r: httpx.Response(200, json={"success": True, "message": "restarted"}))

        result = await channel.activate(SERVER, APP)

        assert result.ok is True
        assert result.detail == "restarted"
        assert seen[0].method == "PUT"
        assert str(seen[0].url) == f"{APP_URL}/actions/restart"
        assert seen[0].headers["authorization"].startswith("Basic ")

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"success": False, "message": "app not found"}),
            httpx.Response(200, text="<html>ok</html>"),
            httpx.Response(500, text="Internal error"),
        ],
    )
    async def test_activate_unrecognized_reply_is_failure(self, response):
        """Test anything but an explicit success is a failure carrying the raw reply."""
        channel, _ = make_channel(lambda r: response)

        result = await channel.activate(SERVER, APP)

        assert result.ok is False
        assert result.detail

    async def test_deactivate_not_running_is_ok(self):
        channel, seen = make_channel(lambda r: httpx.Response(404, text="not found"))

        result = await channel.deactivate(SERVER, APP)

        assert result.ok is True
        assert str(seen[0].url) == f"{APP_URL}/actions/shutdown"

    async def test_timeout_raises_remote_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        channel, _ = make_channel(handler)

        with pytest.raises(RemoteTimeoutError) as exc_info:
            await channel.activate(SERVER, APP)

        assert exc_info.value.errcode == AppErrorCode.E_REMOTE_TIMEOUT

    async def test_unreachable_raises_remote_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        channel, _ = make_channel(handler)

        with pytest.raises(AppError) as exc_info:
            await channel.deactivate(SERVER, APP)

        assert exc_info.value.errcode == AppErrorCode.E_REMOTE_ERROR


class TestIsRunning:
    async def test_running_with_instances(self):
        channel, seen = make_channel(lambda r: httpx.Response(200, json={"instanceList": [{"name": "_definst_"}]}))

        assert await channel.is_running(SERVER, APP) is True
        assert str(seen[0].url) == f"{APP_URL}/instances"

    async def test_not_running_when_missing(self):
        channel, _ = make_channel(lambda r: httpx.Response(404))

        assert await channel.is_running(SERVER, APP) is False

    async def test_error_status_raises(self):
        channel, _ = make_channel(lambda r: httpx.Response(503, text="busy"))

        with pytest.raises(AppError):
            await channel.is_running(SERVER, APP)

    @pytest.mark.parametrize(
        "response",
        [httpx.Response(200, text="OK"), httpx.Response(200, json=["_definst_"])],
    )
    async def test_unrecognized_reply_raises_remote_error(self, response):
        channel, _ = make_channel(lambda r: response)

        with pytest.raises(AppError) as exc_info:
            await channel.is_running(SERVER, APP)

        assert exc_info.value.errcode == AppErrorCode.E_REMOTE_ERROR
        assert exc_info.value.detail.startswith("Unrecognized reply")


class TestPushPublish:
    """Tests for push_to_platform, stop_push and query_push."""

    async def test_push_sends_map_entry(self):
        """Test the push body names the source stream and splits the target."""
        # Arrange
        channel, seen = make_channel(lambda r: httpx.Response(201, json={"success": True}))

        # Act
        result = await channel.push_to_platform(SERVER, APP, "sl_1", "rtmp://a.rtmp.youtube.com/live2/", "key-1")

        # Assert
        assert result.ok is True
        assert result.handle == "sl_1"
        assert result.confirmed is True
        assert result.method == PUSH_METHOD
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == f"{APP_URL}/pushpublish/mapentries/sl_1"
        body = json.loads(request.content)
        assert body["sourceStreamName"] == APP
        assert body["host"] == "a.rtmp.youtube.com"
        assert body["streamName"] == "key-1"

    async def test_push_rejected_has_no_handle(self):
        channel, _ = make_channel(lambda r: httpx.Response(400, text="bad entry"))

        result = await channel.push_to_platform(SERVER, APP, "sl_1", "rtmp://host/app", "k")

        assert result.ok is False
        assert result.handle is None
        assert "bad entry" in result.detail

    async def test_stop_missing_push_is_ok(self):
        channel, seen = make_channel(lambda r: httpx.Response(404))

        result = await channel.stop_push(SERVER, APP, "sl_1")

        assert result.ok is True
        assert seen[0].method == "DELETE"

    async def test_query_push_metrics(self):
        channel, _ = make_channel(
            lambda r: httpx.Response(
                200,
                json={"sessionStatus": "Active", "bitrate": 2_500_000, "viewers": 7, "uptimeMilliseconds": 61_500},
            )
        )

        status = await channel.query_push(SERVER, APP, "sl_1")

        assert status.active is True
        assert status.bitrate_kbps == 2500.0
        assert status.viewers == 7
        assert status.uptime_seconds == 61

    async def test_query_unknown_push_is_none(self):
        channel, _ = make_channel(lambda r: httpx.Response(404))

        assert await channel.query_push(SERVER, APP, "sl_1") is None

    async def test_query_push_non_json_raises_remote_error(self):
        channel, _ = make_channel(lambda r: httpx.Response(200, text="<html>status</html>"))

        with pytest.raises(AppError) as exc_info:
            await channel.query_push(SERVER, APP, "sl_1")

        assert exc_info.value.errcode == AppErrorCode.E_REMOTE_ERROR


class TestIncomingStreams:
    async def test_incoming_streams_parsed(self):
        channel, _ = make_channel(
            lambda r: httpx.Response(
                200,
                json={
                    "incomingstreams": [
                        {"name": "encoder", "isConnected": True, "uptimeMilliseconds": 5000},
                        {"name": "stale", "isConnected": False},
                    ]
                },
            )
        )

        streams = await channel.incoming_streams(SERVER, APP)

        assert [(s.name, s.is_connected, s.uptime_seconds) for s in streams] == [
            ("encoder", True, 5),
            ("stale", False, 0),
        ]

    async def test_byte_rate_is_not_reported_as_viewers(self):
        channel, _ = make_channel(
            lambda r: httpx.Response(
                200,
                json={"incomingstreams": [{"name": "encoder", "isConnected": True, "messagesOutBytesRate": 91_000}]},
            )
        )

        streams = await channel.incoming_streams(SERVER, APP)

        assert streams[0].viewers == 0

    async def test_non_json_raises_remote_error(self):
        channel, _ = make_channel(lambda r: httpx.Response(200, text="OK"))

        with pytest.raises(AppError) as exc_info:
            await channel.incoming_streams(SERVER, APP)

        assert exc_info.value.errcode == AppErrorCode.E_REMOTE_ERROR


class TestDemoMode:
    """Tests that demo mode never reaches the network."""

    async def test_demo_stubs(self):
        def handler(request):
            raise AssertionError("demo mode must not send requests")

        channel = WowzaRestChannel(demo_mode=True, transport=httpx.MockTransport(handler))

        assert await channel.is_running(SERVER, APP) is False
        assert (await channel.activate(SERVER, APP)).ok is True
        push = await channel.push_to_platform(SERVER, APP, "sl_1", "rtmp://host/app", "k")
        assert push.handle == "sl_1"
        assert (await channel.stop_push(SERVER, APP, "sl_1")).ok is True
        assert await channel.incoming_streams(SERVER, APP) == []
