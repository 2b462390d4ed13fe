"""
Plattform-Schnittstellen des Service Workers (Cache Storage, Netzwerk,
Clients, Registration, MessagePort) plus In-Memory-Implementierungen.

Die In-Memory-Varianten sind der Host für lokale Läufe und Tests; ein
echter Browser-Host implementiert dieselben Protocols.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Protocol


class NetworkError(Exception):
    """Request konnte nicht über das Netzwerk beantwortet werden."""


@dataclass(frozen=True)
class Request:
    url: str
    method: str = "GET"
    destination: str = ""  # "document" für Navigationen


@dataclass
class Response:
    status: int = 200
    body: bytes = b""
    type: str = "basic"  # basic | cors | opaque
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def clone(self) -> "Response":
        return replace(self, headers=dict(self.headers))


@dataclass
class Notification:
    title: str
    options: dict[str, Any] = field(default_factory=dict)
    closed: bool = False

    @property
    def data(self) -> dict:
        return self.options.get("data") or {}

    @property
    def tag(self) -> str | None:
        return self.options.get("tag")

    def close(self) -> None:
        self.closed = True


# ── Protocols ────────────────────────────────────────────────────────────────

class Network(Protocol):
    async def fetch(self, request: Request) -> Response: ...


class Cache(Protocol):
    async def add_all(self, urls: list[str]) -> None: ...

    async def put(self, request: Request, response: Response) -> None: ...

    async def match(self, request: Request) -> Response | None: ...


class CacheStorage(Protocol):
    async def open(self, name: str) -> Cache: ...

    async def keys(self) -> list[str]: ...

    async def delete(self, name: str) -> bool: ...

    async def match(self, request: Request) -> Response | None: ...


class WindowClient(Protocol):
    url: str

    async def focus(self) -> "WindowClient": ...


class Clients(Protocol):
    async def match_all(self, type: str = "window", include_uncontrolled: bool = False) -> list[WindowClient]: ...

    async def open_window(self, url: str) -> WindowClient | None: ...

    async def claim(self) -> None: ...


class Registration(Protocol):
    async def show_notification(self, title: str, options: dict[str, Any]) -> Notification: ...


class MessagePort(Protocol):
    def post_message(self, data: Any) -> None: ...


# ── In-Memory-Host ───────────────────────────────────────────────────────────

class MemoryNetwork:
    """Antwortet aus einer festen URL → Response Tabelle; offline wirft NetworkError."""

    def __init__(self, routes: dict[str, Response] | None = None):
        self.routes = dict(routes or {})
        self.online = True
        self.requests: list[Request] = []

    async def fetch(self, request: Request) -> Response:
        self.requests.append(request)
        if not self.online:
            raise NetworkError(f"offline: {request.url}")
        response = self.routes.get(request.url)
        if response is None:
            return Response(status=404, url=request.url)
        return response.clone()


class MemoryCache:

    def __init__(self, network: Network):
        self._network = network
        self._entries: dict[str, Response] = {}

    def __contains__(self, url: str) -> bool:
        return url in self._entries

    async def add_all(self, urls: list[str]) -> None:
        # Alles oder nichts, wie Cache.addAll()
        fetched: dict[str, Response] = {}
        for url in urls:
            response = await self._network.fetch(Request(url))
            if not response.ok:
                raise NetworkError(f"{url} → {response.status}")
            fetched[url] = response
        self._entries.update(fetched)

    async def put(self, request: Request, response: Response) -> None:
        self._entries[request.url] = response

    async def match(self, request: Request) -> Response | None:
        response = self._entries.get(request.url)
        return response.clone() if response else None


class MemoryCacheStorage:

    def __init__(self, network: Network):
        self._network = network
        self._caches: dict[str, MemoryCache] = {}

    async def open(self, name: str) -> MemoryCache:
        if name not in self._caches:
            self._caches[name] = MemoryCache(self._network)
        return self._caches[name]

    async def keys(self) -> list[str]:
        return list(self._caches)

    async def delete(self, name: str) -> bool:
        return self._caches.pop(name, None) is not None

    async def match(self, request: Request) -> Response | None:
        for cache in self._caches.values():
            response = await cache.match(request)
            if response is not None:
                return response
        return None


@dataclass
class MemoryWindowClient:
    url: str
    controlled: bool = False
    focused: bool = False

    async def focus(self) -> "MemoryWindowClient":
        self.focused = True
        return self


class MemoryClients:

    def __init__(self, windows: list[MemoryWindowClient] | None = None):
        self.windows = list(windows or [])
        self.opened: list[str] = []
        self.claimed = False

    async def match_all(self, type: str = "window", include_uncontrolled: bool = False) -> list[MemoryWindowClient]:
        return [w for w in self.windows if include_uncontrolled or w.controlled]

    async def open_window(self, url: str) -> MemoryWindowClient:
        self.opened.append(url)
        window = MemoryWindowClient(url=url, controlled=True, focused=True)
        self.windows.append(window)
        return window

    async def claim(self) -> None:
        self.claimed = True
        for window in self.windows:
            window.controlled = True


class MemoryRegistration:

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    async def show_notification(self, title: str, options: dict[str, Any]) -> Notification:
        notification = Notification(title=title, options=dict(options))
        self.notifications.append(notification)
        return notification


class MemoryMessagePort:

    def __init__(self) -> None:
        self.messages: list[Any] = []

    def post_message(self, data: Any) -> None:
        self.messages.append(data)
