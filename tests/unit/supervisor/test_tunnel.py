"""Tests for tunnel output scraping"""

import pytest

from deckshell.errors import InvalidPortError
from deckshell.supervisor.tunnel import (
    TunnelInfo,
    launch_tunnel,
    parse_tunnel_password,
    parse_tunnel_url,
)


class TestParseTunnelUrl:

    def test_localtunnel_line(self):
        assert parse_tunnel_url("your url is: https://brave-owl-42.loca.lt") == "https://brave-owl-42.loca.lt"

    def test_marker_is_case_insensitive(self):
        assert parse_tunnel_url("Your URL is: https://x.loca.lt\n") == "https://x.loca.lt"

    def test_non_https_value_rejected(self):
        assert parse_tunnel_url("your url is: http://x.loca.lt") is None
        assert parse_tunnel_url("your url is:") is None

    def test_unrelated_line(self):
        assert parse_tunnel_url("npm WARN exec The following package was not found") is None


class TestParseTunnelPassword:

    def test_tunnel_password(self):
        assert parse_tunnel_password("Tunnel Password: 198.51.100.4") == "198.51.100.4"

    def test_plain_password(self):
        assert parse_tunnel_password("password: hunter2") == "hunter2"

    def test_missing(self):
        assert parse_tunnel_password("password:") is None
        assert parse_tunnel_password("nothing here") is None


class TestTunnelInfo:

    @pytest.mark.asyncio
    async def test_last_writer_wins(self):
        info = TunnelInfo()
        await info.observe_line("your url is: https://one.loca.lt")
        await info.observe_line("irrelevant output")
        await info.observe_line("your url is: https://two.loca.lt")
        await info.observe_line("password: abc")

        snap = await info.snapshot()
        assert snap.url == "https://two.loca.lt"
        assert snap.password == "abc"

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self):
        info = TunnelInfo()
        await info.observe_line("your url is: https://one.loca.lt")
        snap = await info.snapshot()
        snap.url = "changed"

        assert (await info.snapshot()).url == "https://one.loca.lt"

    @pytest.mark.asyncio
    async def test_empty_snapshot(self):
        snap = await TunnelInfo().snapshot()
        assert snap.url is None
        assert snap.password is None


@pytest.mark.asyncio
async def test_launch_rejects_privileged_port():
    with pytest.raises(InvalidPortError):
        await launch_tunnel(80)
