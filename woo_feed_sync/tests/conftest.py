"""Shared fixtures for feed pipeline tests."""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from feedsync.config import Settings
from feedsync.core.catalog_client import CatalogApiClient
from feedsync.core.events import FeedEventEmitter
from feedsync.core.feed.models import FeedContext
from feedsync.core.jobs import FeedJobWorker, RedisJobScheduler
from feedsync.core.options import OptionStore


class FakeRedis:
    """In-memory stand-in for the subset of redis.Redis used by the pipeline."""

    def __init__(self):
        self.strings: Dict[str, str] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.lists: Dict[str, List[str]] = {}
        self.streams: Dict[str, List[Dict[str, str]]] = {}
        self.expirations: Dict[str, int] = {}

    def ping(self):
        return True

    def close(self):
        pass

    def get(self, key: str) -> Optional[str]:
        return self.strings.get(key)

    def set(self, key: str, value: Any, nx: bool = False, ex: Optional[int] = None):
        if nx and key in self.strings:
            return None
        self.strings[key] = str(value)
        if ex is not None:
            self.expirations[key] = ex
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            for store in (self.strings, self.hashes, self.lists, self.streams):
                if key in store:
                    del store[key]
                    removed += 1
        return removed

    def expire(self, key: str, seconds: int) -> bool:
        self.expirations[key] = seconds
        return True

    def hset(self, key: str, field: Optional[str] = None, value: Any = None, mapping: Optional[Dict] = None) -> int:
        data = self.hashes.setdefault(key, {})
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        added = 0
        for k, v in items.items():
            if k not in data:
                added += 1
            data[k] = str(v)
        return added

    def hget(self, key: str, field: str) -> Optional[str]:
        return self.hashes.get(key, {}).get(field)

    def hdel(self, key: str, *fields: str) -> int:
        data = self.hashes.get(key, {})
        removed = 0
        for field in fields:
            if field in data:
                del data[field]
                removed += 1
        return removed

    def hgetall(self, key: str) -> Dict[str, str]:
        return dict(self.hashes.get(key, {}))

    def rpush(self, key: str, *values: str) -> int:
        self.lists.setdefault(key, []).extend(values)
        return len(self.lists[key])

    def lpop(self, key: str) -> Optional[str]:
        items = self.lists.get(key)
        if not items:
            return None
        return items.pop(0)

    def xadd(self, key: str, fields: Dict[str, str], maxlen: Optional[int] = None, approximate: bool = True) -> str:
        stream = self.streams.setdefault(key, [])
        stream.append(dict(fields))
        if maxlen is not None and len(stream) > maxlen:
            del stream[:len(stream) - maxlen]
        return f"{len(stream)}-0"


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        feed_base_dir=str(tmp_path / "feeds"),
        feed_base_url="https://shop.example.com/api/v1/feeds",
        store_name="WooCommerce",
        product_catalog_id="",
        commerce_partner_integration_id="",
        access_token=None,
        woo_store_url=None,
        woo_consumer_key=None,
        woo_consumer_secret=None,
        language_override_data_file=None,
        country_override_data_file=None,
    )


@pytest.fixture
def scheduler(fake_redis) -> RedisJobScheduler:
    return RedisJobScheduler(fake_redis, lock_ttl=60)


@pytest.fixture
def worker(scheduler) -> FeedJobWorker:
    return FeedJobWorker(scheduler)


@pytest.fixture
def events(fake_redis) -> FeedEventEmitter:
    return FeedEventEmitter(fake_redis)


@pytest.fixture
def context(settings, fake_redis, events, scheduler) -> FeedContext:
    return FeedContext(
        settings=settings,
        options=OptionStore(fake_redis),
        events=events,
        scheduler=scheduler,
    )


class GraphApiStub:
    """Records Graph API requests and answers them from a route table."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {}

    def route(self, method: str, path: str, status_code: int = 200, body: Any = None):
        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json=body if body is not None else {})
        self.routes[(method, path)] = respond

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        respond = self.routes.get((request.method, request.url.path))
        if respond is None:
            return httpx.Response(404, json={"error": {"message": f"No route {request.url.path}"}})
        return respond(request)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def client(self) -> CatalogApiClient:
        return CatalogApiClient(
            access_token="EAAtesttoken",
            base_url="https://graph.example.com",
            api_version="v21.0",
            max_retries=0,
            initial_delay=0,
            transport=httpx.MockTransport(self.handler)
        )


def request_json(request: httpx.Request) -> Dict[str, Any]:
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def graph_api() -> GraphApiStub:
    return GraphApiStub()
