import json

import httpx
import pytest

from journey import JourneyConfig, StepDefinition

BASE_URL = "http://shop.test"


class FakeClock:
    """Clock whose time only moves when something sleeps on it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class Recorder:
    """MockTransport handler that keeps every request and answers 200."""

    def __init__(self, fail_paths=(), status_code=200):
        self.requests = []
        self.fail_paths = set(fail_paths)
        self.status_code = status_code

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        if request.url.path in self.fail_paths:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_code, json={"status": "ok"})

    def client(self):
        return httpx.Client(transport=httpx.MockTransport(self))

    def to(self, path):
        return [r for r in self.requests if r.url.path == path]

    def bodies(self, path):
        return [json.loads(r.content) for r in self.to(path)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return Recorder()


def make_config(*waits, **kw):
    steps = [StepDefinition(name=f"S{i}", wait=w) for i, w in enumerate(waits)]
    return JourneyConfig(company=kw.get("company", "Next"), base_url=BASE_URL, steps=steps,
                         test_name="T", script_name="LSN")
