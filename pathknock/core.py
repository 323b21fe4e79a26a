from datetime import datetime, timedelta, timezone
from typing import Iterable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ISO_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class TriggerPaths(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefixes: frozenset[str] = frozenset()
    exact: frozenset[str] = frozenset()


class Rule(BaseModel):
    """One knock rule: which paths trigger it and which list the caller lands on."""

    model_config = ConfigDict(frozen=True)

    name: str
    list_id: str
    mode: Literal["allow", "block"] = "allow"
    notes: str = "Added via path knocking"
    expiration_hours: int = Field(default=24, gt=0)
    trigger_paths: TriggerPaths = TriggerPaths()


def rule_matches(rule: Rule, path: str) -> bool:
    triggers = rule.trigger_paths
    if path in triggers.exact:
        return True
    return any(path.startswith(prefix) for prefix in triggers.prefixes)


def classify(path: str, rules: Iterable[Rule]) -> Optional[Rule]:
    """
    Returns the first rule (in configured order) whose prefixes or exact
    paths match ``path``, or None.
    """
    for rule in rules:
        if rule_matches(rule, path):
            return rule
    return None


def expiration_timestamp(now: datetime, hours: int) -> str:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    expires = now.astimezone(timezone.utc) + timedelta(hours=hours)
    return expires.strftime(ISO_UTC_FORMAT)


def build_list_item(ip: str, rule: Rule, now: datetime) -> dict:
    return {
        "mode": rule.mode,
        "configuration": {"target": "ip", "value": ip},
        "notes": rule.notes,
        "expires_on": expiration_timestamp(now, rule.expiration_hours),
    }
