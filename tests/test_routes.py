"""End-to-end tests of the downloads HTTP surface."""

import json

import pytest

from release_proxy.exceptions import BadRequestError
from release_proxy.models.catalog import AppEntry
from release_proxy.models.config import ServiceConfig
from release_proxy.storage.catalog_cache import CATALOG_DIR, CATALOG_PATH
from release_proxy.web import create_app
from release_proxy.web.keys import CATALOG_CACHE, DOWNLOAD_PROXY, SESSION_POOL

from .conftest import UNREACHABLE_API, USER_AGENT

REPO = "clash-verge-rev/clash-verge-rev"
BINARY = b"MZ\x90\x00 fake installer bytes"


def _config(api_url: str, **overrides) -> ServiceConfig:
    return ServiceConfig(
        store_backend="memory",
        release_api_url=api_url,
        user_agent=USER_AGENT,
        resolve_timeout=2,
        **overrides,
    )


def _entry(fallback_url: str) -> AppEntry:
    return AppEntry.model_validate(
        {
            "name": "Clash Verge",
            "description": "Tauri client",
            "platforms": {
                "windows": {
                    "repo": REPO,
                    "asset_pattern": r".*_x64-setup\.exe$",
                    "fallback_url": fallback_url,
                },
                "macos": {
                    "repo": REPO,
                    "asset_pattern": r".*_aarch64\.dmg$",
                    "fallback_url": fallback_url,
                },
            },
        }
    )


@pytest.fixture
def fallback_url(upstream) -> str:
    return upstream.add_file(
        "setup.exe",
        BINARY,
        **{
            "Content-Type": "application/x-msdownload",
            "ETag": '"v1"',
            "Last-Modified": "Wed, 01 Jan 2025 00:00:00 GMT",
            "Cache-Control": "max-age=300",
        },
    )


async def _client(aiohttp_client, registry, config, entries=None):
    app = create_app(config, registry)
    if entries is not None:
        await app[CATALOG_CACHE].replace(entries)
    return await aiohttp_client(app)


# ---------------------------------------------------------------------------
# GET /downloads/{app_id}/{platform}
# ---------------------------------------------------------------------------

async def test_unreachable_release_api_streams_fallback(
    aiohttp_client, registry, upstream, fallback_url
):
    client = await _client(
        aiohttp_client, registry, _config(UNREACHABLE_API), [_entry(fallback_url)]
    )

    resp = await client.get("/downloads/Clash%20Verge/windows")

    assert resp.status == 200
    assert await resp.read() == BINARY
    assert "Clash_Verge_windows.exe" in resp.headers["Content-Disposition"]
    assert resp.headers["Content-Disposition"].startswith("attachment;")
    assert resp.headers["Content-Type"] == "application/x-msdownload"
    assert resp.headers["Content-Length"] == str(len(BINARY))
    assert resp.headers["ETag"] == '"v1"'
    assert resp.headers["Last-Modified"] == "Wed, 01 Jan 2025 00:00:00 GMT"
    assert resp.headers["Cache-Control"] == "max-age=300"
    assert upstream.requests[-1].headers["User-Agent"] == USER_AGENT


async def test_latest_release_asset_is_preferred(
    aiohttp_client, registry, upstream, fallback_url
):
    upstream.add_file("Clash.Verge_2.3.0_x64-setup.exe", b"newest build")
    upstream.add_release(REPO, ["Clash.Verge_2.3.0_x64-setup.exe"])
    client = await _client(
        aiohttp_client, registry, _config(upstream.api_url), [_entry(fallback_url)]
    )

    resp = await client.get("/downloads/clash%20verge/windows")

    assert resp.status == 200
    assert await resp.read() == b"newest build"
    assert 'filename="clash_verge_windows.exe"' in resp.headers["Content-Disposition"]


async def test_no_matching_asset_uses_fallback(
    aiohttp_client, registry, upstream, fallback_url
):
    upstream.add_release(REPO, ["Clash.Verge_2.3.0_aarch64.dmg"])
    client = await _client(
        aiohttp_client, registry, _config(upstream.api_url), [_entry(fallback_url)]
    )

    resp = await client.get("/downloads/Clash%20Verge/windows")

    assert resp.status == 200
    assert await resp.read() == BINARY
    assert upstream.requests[-1].path == "/files/setup.exe"


async def test_unknown_app_is_404(aiohttp_client, registry):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))

    resp = await client.get("/downloads/UnknownApp/windows")

    assert resp.status == 404
    assert "error" in await resp.json()


async def test_unknown_platform_is_404(aiohttp_client, registry, fallback_url):
    client = await _client(
        aiohttp_client, registry, _config(UNREACHABLE_API), [_entry(fallback_url)]
    )
    resp = await client.get("/downloads/Clash%20Verge/android")
    assert resp.status == 404


async def test_blank_app_id_is_not_found(aiohttp_client, registry):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))

    resp = await client.get("/downloads/%20/windows")

    assert resp.status == 404
    assert "error" in await resp.json()


@pytest.mark.parametrize("app_id,platform", [("", "windows"), ("Clash Verge", "")])
async def test_empty_parameters_are_rejected(registry, app_id, platform):
    app = create_app(_config(UNREACHABLE_API), registry)

    with pytest.raises(BadRequestError, match="App ID and platform are required"):
        await app[DOWNLOAD_PROXY].fetch_download(app_id, platform)


async def test_upstream_status_is_propagated(aiohttp_client, registry, upstream):
    upstream.file_status["broken.exe"] = 503
    client = await _client(
        aiohttp_client,
        registry,
        _config(UNREACHABLE_API),
        [_entry(upstream.url("/files/broken.exe"))],
    )

    resp = await client.get("/downloads/Clash%20Verge/windows")

    assert resp.status == 503
    assert "error" in await resp.json()


async def test_unreachable_asset_host_is_502(aiohttp_client, registry):
    client = await _client(
        aiohttp_client,
        registry,
        _config(UNREACHABLE_API),
        [_entry(f"{UNREACHABLE_API}/setup.exe")],
    )

    resp = await client.get("/downloads/Clash%20Verge/windows")

    assert resp.status == 502
    assert "error" in await resp.json()


async def test_missing_content_type_defaults_to_octet_stream(registry, upstream):
    url = upstream.add_untyped_file("tool", b"raw")
    app = create_app(_config(UNREACHABLE_API), registry)
    await app[CATALOG_CACHE].replace([_entry(url)])

    try:
        streamed = await app[DOWNLOAD_PROXY].fetch_download("Clash Verge", "macos")
        async with streamed:
            body = b"".join([chunk async for chunk in streamed.iter_chunks()])
    finally:
        await app[SESSION_POOL].close()

    assert body == b"raw"
    assert streamed.filename == "Clash_Verge_macos"
    assert streamed.headers["Content-Type"] == "application/octet-stream"
    assert streamed.fallback


async def test_head_sends_headers_without_body(
    aiohttp_client, registry, upstream, fallback_url
):
    client = await _client(
        aiohttp_client, registry, _config(UNREACHABLE_API), [_entry(fallback_url)]
    )

    head = await client.head("/downloads/Clash%20Verge/windows")

    assert head.status == 200
    assert "Clash_Verge_windows.exe" in head.headers["Content-Disposition"]
    assert head.headers["Content-Length"] == str(len(BINARY))
    assert await head.read() == b""

    # The connection is still usable afterwards.
    resp = await client.get("/downloads/Clash%20Verge/windows")
    assert resp.status == 200
    assert await resp.read() == BINARY


async def test_slow_asset_host_is_504(aiohttp_client, registry, upstream, fallback_url):
    upstream.file_delay = 2.0
    client = await _client(
        aiohttp_client,
        registry,
        _config(UNREACHABLE_API, download_timeout=0.3),
        [_entry(fallback_url)],
    )

    resp = await client.get("/downloads/Clash%20Verge/windows")

    assert resp.status == 504
    assert (await resp.json())["error"].startswith("Timed out downloading file")


# ---------------------------------------------------------------------------
# GET / POST /downloads
# ---------------------------------------------------------------------------

async def test_listing_has_one_entry_per_platform(aiohttp_client, registry, fallback_url):
    client = await _client(
        aiohttp_client, registry, _config(UNREACHABLE_API), [_entry(fallback_url)]
    )

    resp = await client.get("/downloads")
    listing = await resp.json()

    assert resp.status == 200
    assert [(d["name"], d["platform"]) for d in listing] == [
        ("Clash Verge", "windows"),
        ("Clash Verge", "macos"),
    ]
    first = listing[0]
    assert first["download_url"] == "/downloads/Clash%20Verge/windows"
    assert first["version"] == "latest"
    assert first["size"] == 0
    assert first["description"] == "Tauri client"
    assert len(first["release_date"]) == 10


async def test_listing_without_catalog_serves_defaults(aiohttp_client, registry):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))

    listing = await (await client.get("/downloads")).json()

    assert {d["name"] for d in listing} == {"Clash Verge", "Clash Meta for Android"}


async def test_post_refreshes_catalog(aiohttp_client, registry, memory_store):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))
    await memory_store.create_directory(CATALOG_DIR)
    old = {"timestamp": 1_000_000_000, "downloads": []}
    await memory_store.write_file(CATALOG_PATH, json.dumps(old))

    resp = await client.post("/downloads")
    body = await resp.json()

    assert resp.status == 200
    assert body["success"] is True
    document = await (await client.get("/admin/downloads")).json()
    assert document["timestamp"] > old["timestamp"]
    assert len(document["downloads"]) == 2


async def test_api_prefix_applies_to_routes_and_links(aiohttp_client, registry):
    client = await _client(
        aiohttp_client, registry, _config(UNREACHABLE_API, api_prefix="/api")
    )

    listing = await (await client.get("/api/downloads")).json()

    assert listing[0]["download_url"].startswith("/api/downloads/")
    assert (await client.get("/downloads")).status == 404


# ---------------------------------------------------------------------------
# /admin/downloads
# ---------------------------------------------------------------------------

async def test_admin_document_missing_is_404(aiohttp_client, registry):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))
    resp = await client.get("/admin/downloads")
    assert resp.status == 404


@pytest.mark.parametrize("method", ["post", "put"])
async def test_admin_replace_catalog(aiohttp_client, registry, fallback_url, method):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))
    payload = {"downloads": [_entry(fallback_url).model_dump()]}

    resp = await getattr(client, method)("/admin/downloads", json=payload)

    assert resp.status == 200
    assert (await resp.json())["success"] is True
    listing = await (await client.get("/downloads")).json()
    assert {d["name"] for d in listing} == {"Clash Verge"}


@pytest.mark.parametrize(
    "payload",
    [
        {"downloads": "nope"},
        {"something": []},
        {"downloads": [{"name": "x", "platforms": {"w": {"repo": "bad"}}}]},
    ],
)
async def test_admin_replace_rejects_invalid_body(aiohttp_client, registry, payload):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))

    resp = await client.post("/admin/downloads", json=payload)

    assert resp.status == 400
    assert "error" in await resp.json()


async def test_admin_replace_rejects_non_json(aiohttp_client, registry):
    client = await _client(aiohttp_client, registry, _config(UNREACHABLE_API))
    resp = await client.post("/admin/downloads", data=b"not json")
    assert resp.status == 400
