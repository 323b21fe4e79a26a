"""Tests for the list service client."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from pathknock.config import KnockConfig
from pathknock.core import Rule, TriggerPaths
from pathknock.lists import Ack, UpdateError, list_items_url, submit

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
ITEMS_URL = "https://api.cloudflare.com/client/v4/accounts/acct-1/rules/lists/list-allow/items"


@pytest.fixture
def rule():
    return Rule(
        name="admins",
        list_id="list-allow",
        mode="allow",
        notes="Added via path knocking",
        expiration_hours=24,
        trigger_paths=TriggerPaths(exact=frozenset({"/auth_check"})),
    )


@pytest.fixture
def config(rule):
    return KnockConfig(account_id="acct-1", api_token="tok-123", rules=(rule,))


def test_list_items_url(config):
    assert list_items_url(config, "list-allow") == ITEMS_URL


@pytest.mark.asyncio
async def test_submit_posts_single_item_batch(config, rule, respx_mock):
    route = respx_mock.post(ITEMS_URL).mock(
        return_value=httpx.Response(200, json={"success": True, "errors": [], "result": {}})
    )

    async with httpx.AsyncClient() as client:
        result = await submit(client, config, "198.51.100.4", rule, NOW)

    assert isinstance(result, Ack)
    assert result.expires_on == "2024-01-02T00:00:00Z"
    assert result.list_id == "list-allow"

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer tok-123"
    assert request.headers["Content-Type"] == "application/json"
    assert json.loads(request.content) == [{
        "mode": "allow",
        "configuration": {"target": "ip", "value": "198.51.100.4"},
        "notes": "Added via path knocking",
        "expires_on": "2024-01-02T00:00:00Z",
    }]


@pytest.mark.asyncio
async def test_submit_reports_provider_errors(config, rule, respx_mock):
    errors = [{"code": 10000, "message": "Authentication error"}]
    respx_mock.post(ITEMS_URL).mock(
        return_value=httpx.Response(403, json={"success": False, "errors": errors})
    )

    async with httpx.AsyncClient() as client:
        result = await submit(client, config, "198.51.100.4", rule, NOW)

    assert isinstance(result, UpdateError)
    assert result.errors == errors
    assert "Authentication error" in result.message


@pytest.mark.asyncio
async def test_submit_treats_missing_success_flag_as_failure(config, rule, respx_mock):
    respx_mock.post(ITEMS_URL).mock(return_value=httpx.Response(200, json={"result": {}}))

    async with httpx.AsyncClient() as client:
        result = await submit(client, config, "198.51.100.4", rule, NOW)

    assert isinstance(result, UpdateError)
    assert result.errors is None


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(502, text="<html>Bad gateway</html>"),
    httpx.Response(200, json=[{"success": True}]),
])
async def test_submit_rejects_malformed_bodies(config, rule, response, respx_mock):
    respx_mock.post(ITEMS_URL).mock(return_value=response)

    async with httpx.AsyncClient() as client:
        result = await submit(client, config, "198.51.100.4", rule, NOW)

    assert isinstance(result, UpdateError)
    assert "malformed" in result.message


@pytest.mark.asyncio
async def test_submit_network_failure_is_a_result(config, rule, respx_mock):
    respx_mock.post(ITEMS_URL).mock(side_effect=httpx.ConnectError("connection refused"))

    async with httpx.AsyncClient() as client:
        result = await submit(client, config, "198.51.100.4", rule, NOW)

    assert isinstance(result, UpdateError)
    assert "request failed" in result.message


@pytest.mark.asyncio
async def test_same_ip_twice_is_submitted_twice(config, rule, respx_mock):
    route = respx_mock.post(ITEMS_URL).mock(
        return_value=httpx.Response(200, json={"success": True})
    )

    async with httpx.AsyncClient() as client:
        await submit(client, config, "198.51.100.4", rule, NOW)
        await submit(client, config, "198.51.100.4", rule, NOW)

    assert route.call_count == 2
