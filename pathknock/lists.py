"""Client for the remote list service (Cloudflare Lists API).

One knock produces exactly one POST of a single-item batch. Nothing is
retried and nothing is deduplicated locally; the caller receives an
``Ack`` or an ``UpdateError`` value instead of an exception.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

import httpx

from pathknock.config import KnockConfig
from pathknock.core import Rule, build_list_item

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ack:
    rule_name: str
    list_id: str
    ip: str
    expires_on: str
    payload: dict


@dataclass(frozen=True)
class UpdateError:
    """A failed list update.

    Attributes:
        message: Human-readable summary of what went wrong
        errors: Raw ``errors`` payload from the provider, when it sent one
    """

    rule_name: str
    list_id: str
    ip: str
    message: str
    errors: Any = None


UpdateResult = Union[Ack, UpdateError]


def list_items_url(config: KnockConfig, list_id: str) -> str:
    return f"{config.api_base}/accounts/{config.account_id}/rules/lists/{list_id}/items"


async def submit(
    client: httpx.AsyncClient,
    config: KnockConfig,
    ip: str,
    rule: Rule,
    now: datetime,
) -> UpdateResult:
    item = build_list_item(ip, rule, now)
    headers = {
        "Authorization": f"Bearer {config.api_token}",
        "Content-Type": "application/json",
    }

    def failed(message: str, errors: Any = None) -> UpdateError:
        logger.error(
            "List update failed for %s on list %s (%s): %s",
            ip, rule.name, rule.list_id, message,
        )
        return UpdateError(
            rule_name=rule.name,
            list_id=rule.list_id,
            ip=ip,
            message=message,
            errors=errors,
        )

    try:
        resp = await client.post(
            list_items_url(config, rule.list_id),
            headers=headers,
            json=[item],
        )
    except httpx.HTTPError as exc:
        return failed(f"request failed: {exc!r}")

    try:
        body = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return failed(f"malformed response (HTTP {resp.status_code}): {resp.text[:200]!r}")

    if not isinstance(body, dict):
        return failed(f"malformed response (HTTP {resp.status_code}): expected a JSON object")

    if body.get("success") is not True:
        errors = body.get("errors")
        return failed(
            f"provider error (HTTP {resp.status_code}): {json.dumps(errors, default=str)}",
            errors,
        )

    logger.info("Added %s to list %s (%s) until %s", ip, rule.name, rule.mode, item["expires_on"])
    return Ack(
        rule_name=rule.name,
        list_id=rule.list_id,
        ip=ip,
        expires_on=item["expires_on"],
        payload=body,
    )
