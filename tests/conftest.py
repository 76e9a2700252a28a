"""Pytest fixtures: settings and a scripted stand-in for requests.Session."""

import json
import os

import pytest
import requests

from vinculum.config import Settings


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body if body is not None else {})
        self.text = text


class FakeSession:
    """
    Serves scripted replies in order (the last one repeats) and records every
    POST. A reply that is an exception instance is raised instead.
    """

    def __init__(self, *replies):
        self.replies = list(replies) or [FakeResponse()]
        self.calls = []

    @property
    def call_count(self):
        return len(self.calls)

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        index = min(len(self.calls), len(self.replies)) - 1
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's shell configuration out of Settings."""
    for var in list(os.environ):
        if var.upper().startswith(("VINCULUM_", "VINICULUM_")) or var.upper() in ("LOG_LEVEL", "LOG_DIR"):
            monkeypatch.delenv(var)


@pytest.fixture
def settings():
    return Settings(
        api_key="test-key",
        api_owner="storefront",
        org_id="ORG1",
        base_url="https://vin.example.test/RestWS/api/eretail/v1",
        timeout_seconds=3,
    )


@pytest.fixture
def rejected():
    return FakeResponse(200, {"responseCode": 11, "responseMessage": "Invalid credentials"})


@pytest.fixture
def shipped_order():
    return FakeResponse(200, {
        "responseCode": 0,
        "orders": [{
            "status": "Shipped",
            "shipDetail": [{
                "shipdate": "01/01/2024 10:00:00",
                "transporter": "BlueDart",
                "tracking_number": "BD123",
            }],
        }],
    })


@pytest.fixture
def timeout_error():
    return requests.Timeout("read timed out")
