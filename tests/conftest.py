"""Pytest fixtures shared by the test modules."""

import json
import os

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code, text):
        self.status_code = status_code
        self.text = text


class FakePost:
    """Stands in for requests.post and records every call."""

    def __init__(self):
        self.calls = []
        self.status_code = 200
        self.text = "{}"
        self.exception = None
        self.queued = []

    def reply(self, body, status_code=200):
        self.text = body if isinstance(body, str) else json.dumps(body)
        self.status_code = status_code

    def queue(self, *bodies):
        self.queued.extend(bodies)

    def fail(self, exception):
        self.exception = exception

    def __call__(self, url=None, json=None, **kwargs):
        self.calls.append({"url": url, "json": json, "kwargs": kwargs})
        if self.exception is not None:
            raise self.exception
        if self.queued:
            self.reply(self.queued.pop(0))
        return FakeResponse(self.status_code, self.text)


@pytest.fixture
def fake_post(monkeypatch):
    fake = FakePost()
    monkeypatch.setattr(requests, "post", fake)
    return fake


@pytest.fixture
def clean_env(monkeypatch):
    """Process environment without any ZABBIX_* variables, restored afterwards."""
    environ = {k: v for k, v in os.environ.items() if not k.startswith("ZABBIX_")}
    monkeypatch.setattr(os, "environ", environ)
    return environ
