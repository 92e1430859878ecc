# automart/repos/cache_storage.py
import base64
import json
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

CACHE_NAMESPACE = "sw-cache:"


@dataclass
class CachedResponse:
    """Snapshot of a response, safe to store and hand out many times."""

    url: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def to_json(self) -> str:
        return json.dumps(
            {
                "url": self.url,
                "status": self.status,
                "headers": self.headers,
                "body": base64.b64encode(self.body).decode("ascii"),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> "CachedResponse":
        data = json.loads(raw)
        return cls(
            url=data["url"],
            status=int(data["status"]),
            headers=dict(data.get("headers") or {}),
            body=base64.b64decode(data.get("body") or ""),
        )


class CachePartition:
    """One named cache. Writes are last-writer-wins per URL."""

    def __init__(self, backend, name: str, namespace: str = CACHE_NAMESPACE):
        self.backend = backend
        self.name = name
        self._prefix = f"{namespace}{name}:"

    def match(self, url: str) -> CachedResponse | None:
        raw = self.backend.get(self._prefix + url)
        return CachedResponse.from_json(raw) if raw is not None else None

    def put(self, url: str, response: CachedResponse) -> None:
        self.backend.set(self._prefix + url, response.to_json())

    def delete(self, url: str) -> bool:
        return self.backend.delete(self._prefix + url)

    def keys(self) -> List[str]:
        return [k[len(self._prefix):] for k in self.backend.keys(self._prefix)]


class CacheStorage:
    """
    Named cache partitions on top of a storage backend (memory or redis),
    shaped like the browser CacheStorage API.
    """

    def __init__(self, backend, namespace: str = CACHE_NAMESPACE):
        self.backend = backend
        self.namespace = namespace
        self._opened: List[str] = []

    def open(self, name: str) -> CachePartition:
        if ":" in name:
            raise ValueError(f"Cache name must not contain ':' ({name})")
        if name not in self._opened:
            self._opened.append(name)
        return CachePartition(self.backend, name, self.namespace)

    def keys(self) -> List[str]:
        # a partition exists once it holds an entry; opened ones come first
        stored = set()
        for key in self.backend.keys(self.namespace):
            stored.add(key[len(self.namespace):].split(":", 1)[0])
        opened = [n for n in self._opened if n in stored]
        return opened + sorted(stored - set(opened))

    def has(self, name: str) -> bool:
        return name in self.keys()

    def delete(self, name: str) -> bool:
        partition = CachePartition(self.backend, name, self.namespace)
        urls = partition.keys()
        for url in urls:
            partition.delete(url)
        if name in self._opened:
            self._opened.remove(name)
        return bool(urls)

    def match(self, url: str, cache_names: Sequence[str] | None = None) -> CachedResponse | None:
        """
        Looks the url up in cache_names, then in every other partition
        opened by this instance. Point lookups only, the keyspace is not listed.
        """
        names = list(cache_names or [])
        names += [n for n in self._opened if n not in names]
        for name in names:
            found = CachePartition(self.backend, name, self.namespace).match(url)
            if found is not None:
                return found
        return None
