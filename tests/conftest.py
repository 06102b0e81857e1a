"""Shared fixtures: in-memory stores and a fake release API / asset host."""

import asyncio

import pytest
from aiohttp import web

from release_proxy.api.http import SessionPool
from release_proxy.core.module_loader import ModuleRegistry
from release_proxy.storage.backing_store import MemoryStore

USER_AGENT = "release-proxy-tests/1.0"

# Nothing listens on the discard port, so connections are refused at once.
UNREACHABLE_API = "http://127.0.0.1:9"


class FakeUpstream:
    """
    Serves `/repos/{owner}/{name}/releases/latest` from `releases` and
    `/files/{name}` from `files`. Records every request it receives.
    """

    def __init__(self):
        self.releases: dict[str, dict | tuple[int, str]] = {}
        self.files: dict[str, tuple[bytes, dict[str, str]]] = {}
        self.file_status: dict[str, int] = {}
        self.untyped_files: set[str] = set()
        self.release_delay = 0.0
        self.file_delay = 0.0
        self.requests: list[web.Request] = []
        self.server = None

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    @property
    def api_url(self) -> str:
        return self.url("/")

    def add_release(self, repo: str, asset_names: list[str]) -> None:
        self.releases[repo] = {
            "tag_name": "v1.0.0",
            "assets": [
                {"name": name, "browser_download_url": self.url(f"/files/{name}")}
                for name in asset_names
            ],
        }

    def add_file(self, name: str, body: bytes, **headers: str) -> str:
        self.files[name] = (body, headers)
        return self.url(f"/files/{name}")

    def add_untyped_file(self, name: str, body: bytes) -> str:
        """Serves `name` without any Content-Type header."""
        self.untyped_files.add(name)
        return self.add_file(name, body)

    async def _release(self, request: web.Request) -> web.StreamResponse:
        self.requests.append(request)
        if self.release_delay:
            await asyncio.sleep(self.release_delay)
        repo = f"{request.match_info['owner']}/{request.match_info['name']}"
        release = self.releases.get(repo)
        if release is None:
            return web.json_response({"message": "Not Found"}, status=404)
        if isinstance(release, tuple):
            status, text = release
            return web.Response(status=status, text=text)
        return web.json_response(release)

    async def _file(self, request: web.Request) -> web.StreamResponse:
        self.requests.append(request)
        name = request.match_info["name"]
        if self.file_delay:
            await asyncio.sleep(self.file_delay)
        if name in self.file_status:
            return web.Response(status=self.file_status[name], text="unavailable")
        if name not in self.files:
            return web.Response(status=404, text="missing")
        body, headers = self.files[name]
        return web.Response(body=body, headers=headers)

    async def _strip_content_type(
        self, request: web.Request, response: web.StreamResponse
    ) -> None:
        # aiohttp fills in a default type before this signal fires.
        if request.match_info.get("name") in self.untyped_files:
            response.headers.popall("Content-Type", None)

    def make_app(self) -> web.Application:
        app = web.Application()
        app.on_response_prepare.append(self._strip_content_type)
        app.router.add_get("/repos/{owner}/{name}/releases/latest", self._release)
        app.router.add_get("/files/{name}", self._file)
        return app


@pytest.fixture
async def upstream(aiohttp_server) -> FakeUpstream:
    fake = FakeUpstream()
    fake.server = await aiohttp_server(fake.make_app())
    return fake


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def registry(memory_store) -> ModuleRegistry:
    async def _factory(view_name: str):
        return memory_store

    return ModuleRegistry(_factory)


@pytest.fixture
async def session_pool():
    pool = SessionPool(user_agent=USER_AGENT)
    yield pool
    await pool.close()
