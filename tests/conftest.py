import httpx
import pytest

from lms.api import ApiClient, LmsApi
from lms.query_cache import QueryCache
from lms.token_store import TokenStore

BASE_URL = "http://lms.test/api"


class FakeClock:
    def __init__(self, start=1_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def ok(data=None, status=200):
    return (status, {"success": True, "data": data})


def fail(status, message="Request failed"):
    return (status, {"success": False, "message": message})


class Backend:
    """Fake REST backend for httpx.MockTransport.

    Each (method, path) has a queue of replies; the last one repeats. A reply
    is a (status, json) tuple, an exception to raise, or a callable taking
    the request.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, *replies):
        self.routes.setdefault((method, path), []).extend(replies)
        return self

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        path = request.url.path[len("/api"):]
        queue = self.routes.get((request.method, path))
        if not queue:
            return httpx.Response(404, json={"success": False, "message": "Not found"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        status, body = reply
        return httpx.Response(status, json=body)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == "/api" + path]


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
def tokens():
    return TokenStore({})


@pytest.fixture
def logouts():
    return []


@pytest.fixture
def client(backend, tokens, logouts):
    c = ApiClient(
        tokens,
        base_url=BASE_URL,
        transport=httpx.MockTransport(backend),
        on_logout=lambda: logouts.append(True),
    )
    yield c
    c._http.close()


@pytest.fixture
def api(client):
    return LmsApi(client)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return QueryCache(stale_time=300, retry=2, clock=clock)
