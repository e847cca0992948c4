"""Public URLs derived from an owner's login and media server host."""

from urllib.parse import urlencode

from pydantic import BaseModel

RTMPS_PORT = 443


class StreamUrls(BaseModel):
    """URLs returned once a transmission is up."""

    playback_hls: str
    direct_hls: str
    direct_rtmp: str
    iframe: str


class SourceUrls(BaseModel):
    """Ingest and playback URLs of the owner's application."""

    hls: str
    rtmp: str
    rtmps: str
    recommended: str = "hls"


def playback_hls_url(host: str, login: str) -> str:
    return f"https://{host}/{login}/{login}/playlist.m3u8"


def build_stream_urls(
    host: str,
    login: str,
    manifest_name: str,
    player_base_url: str,
    playlist_id: str | None = None,
    rtmp_port: int = 1935,
    hints: dict[str, str] | None = None,
) -> StreamUrls:
    """Derive transmission URLs. Provisioner hints override the derived values."""
    query = {"login": login, "player": 1}
    if playlist_id:
        query["playlist"] = playlist_id

    urls = {
        "playback_hls": playback_hls_url(host, login),
        "direct_hls": f"https://{host}/{login}/smil:{manifest_name}/playlist.m3u8",
        "direct_rtmp": f"rtmp://{host}:{rtmp_port}/{login}/smil:{manifest_name}",
        "iframe": f"{player_base_url.rstrip('/')}/player/iframe?{urlencode(query)}",
    }
    for key, value in (hints or {}).items():
        if key in urls and value:
            urls[key] = value
    return StreamUrls(**urls)


def build_source_urls(host: str, login: str, rtmp_port: int = 1935) -> SourceUrls:
    return SourceUrls(
        hls=playback_hls_url(host, login),
        rtmp=f"rtmp://{host}:{rtmp_port}/{login}/{login}",
        rtmps=f"rtmps://{host}:{RTMPS_PORT}/{login}/{login}",
    )
