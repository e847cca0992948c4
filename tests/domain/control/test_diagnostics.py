"""Tests for run_diagnostics."""

import pytest

from tests.fixtures.control_fixtures import OWNER_ID, make_endpoint, never_answers


class TestRunDiagnostics:
    """Tests for the read-only diagnostic checks."""

    async def test_all_runs_every_check(self, service, channel, endpoint):
        """Test the `all` selector returns server, playback URL and SSL checks."""
        channel.is_running.return_value = True

        result = await service.run_diagnostics(OWNER_ID, "all")

        assert result.success is True
        assert [c.title for c in result.checks] == ["Media server", "Playback URL", "SSL certificate"]
        assert all(c.status == "success" for c in result.checks)
        assert result.checks[1].detail == f"https://stream.example.com/{endpoint.login}/{endpoint.login}/playlist.m3u8"

    @pytest.mark.parametrize(
        "selector,title",
        [
            ("server", "Media server"),
            ("playback_url", "Playback URL"),
            ("ssl", "SSL certificate"),
            ("wowza", "Media server"),
            ("m3u8", "Playback URL"),
        ],
    )
    async def test_single_selector(self, service, endpoint, selector, title):
        """Test a single selector (or its legacy alias) runs one check."""
        result = await service.run_diagnostics(OWNER_ID, selector)

        assert [c.title for c in result.checks] == [title]

    async def test_unknown_selector_is_single_warning(self, service, channel, endpoint):
        """Test an unknown selector yields one warning and touches nothing remote."""
        result = await service.run_diagnostics(OWNER_ID, "bandwidth")

        assert len(result.checks) == 1
        assert result.checks[0].status == "warning"
        channel.is_running.assert_not_awaited()

    async def test_missing_endpoint_is_single_error(self, service):
        """Test an owner without endpoint gets a single error check, not a failed result."""
        result = await service.run_diagnostics(OWNER_ID, "all")

        assert result.success is True
        assert len(result.checks) == 1
        assert result.checks[0].status == "error"

    async def test_inactive_server_is_error(self, service, store, channel):
        await store.save_endpoint(make_endpoint(server_active=False))

        result = await service.run_diagnostics(OWNER_ID, "server")

        assert result.checks[0].status == "error"
        channel.is_running.assert_not_awaited()

    async def test_unreachable_server_is_warning(self, service, channel, endpoint):
        """Test a timed-out probe is a warning rather than an error."""
        channel.is_running.side_effect = never_answers

        result = await service.run_diagnostics(OWNER_ID, "server")

        assert result.checks[0].status == "warning"

    async def test_ip_host_ssl_warning(self, service, store):
        await store.save_endpoint(make_endpoint(host="203.0.113.10"))

        result = await service.run_diagnostics(OWNER_ID, "ssl")

        assert result.checks[0].status == "warning"

    async def test_diagnostics_do_not_mutate(self, service, store, endpoint):
        before = await store.get_endpoint(OWNER_ID)

        await service.run_diagnostics(OWNER_ID, "all")

        assert await store.get_endpoint(OWNER_ID) == before
