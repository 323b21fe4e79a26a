import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pathknock.core import Rule
from pathknock.exceptions import ConfigError

APP_ROOT = Path(__file__).resolve().parent.parent
RULES_PATH = APP_ROOT / "rules" / "knock_rules.json"

CLOUDFLARE_API_BASE = "https://api.cloudflare.com/client/v4"
ORIGIN_BASE = "http://127.0.0.1:5000"


class Settings(BaseSettings):
    """Process settings loaded from environment variables or a .env file.

    Secrets and identifiers live here; the knock rules themselves come from
    the JSON file at ``rules_path``.
    """

    account_id: str = ""
    zone_id: str = ""
    api_token: str = ""
    api_base: str = CLOUDFLARE_API_BASE

    origin_base: str = ORIGIN_BASE
    client_ip_header: str = "CF-Connecting-IP"
    http_timeout: float = 10.0

    rules_path: Path = RULES_PATH
    events_path: Path | None = None
    log_actions: bool = True
    log_level: str = "INFO"

    @field_validator("http_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout must be positive")
        return v

    model_config = SettingsConfigDict(env_prefix="PATHKNOCK_", env_file=".env", extra="ignore")


class KnockConfig(BaseModel):
    """Immutable configuration built once at startup and passed explicitly."""

    model_config = ConfigDict(frozen=True)

    account_id: str
    zone_id: str = ""
    api_token: str
    api_base: str = CLOUDFLARE_API_BASE
    origin_base: str = ORIGIN_BASE
    client_ip_header: str = "CF-Connecting-IP"
    http_timeout: float = 10.0
    log_actions: bool = True
    events_path: Path | None = None
    rules: tuple[Rule, ...] = ()


def _legacy_rule(data: dict) -> dict:
    # first-revision layout: one allow list, top-level trigger paths
    whitelisting = data.get("whitelisting", {})
    rule = {
        "name": data.get("name", "allowlist"),
        "list_id": data["list_id"],
        "mode": "allow",
        "trigger_paths": data.get("trigger_paths", {}),
    }
    if "notes" in whitelisting:
        rule["notes"] = whitelisting["notes"]
    if "expiration_hours" in whitelisting:
        rule["expiration_hours"] = whitelisting["expiration_hours"]
    return rule


def parse_rules(data: Any, source: str | None = None) -> tuple[Rule, ...]:
    if not isinstance(data, dict):
        raise ConfigError("rules document must be a JSON object", source)

    if "rules" in data:
        raw_rules = data["rules"]
    elif "list_id" in data:
        raw_rules = [_legacy_rule(data)]
    else:
        raise ConfigError("expected a 'rules' array", source)

    if not isinstance(raw_rules, list):
        raise ConfigError("'rules' must be an array", source)

    rules = []
    for index, raw in enumerate(raw_rules):
        try:
            rules.append(Rule.model_validate(raw))
        except ValidationError as exc:
            raise ConfigError(f"rule #{index} is invalid: {exc}", source) from exc
    return tuple(rules)


def load_rules(path: Path | str = RULES_PATH) -> tuple[Rule, ...]:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as exc:
        raise ConfigError("rules file not found", str(path)) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"invalid JSON: {exc}", str(path)) from exc
    return parse_rules(data, str(path))


def load_config(settings: Settings | None = None) -> KnockConfig:
    settings = settings or Settings()
    if not settings.account_id:
        raise ConfigError("PATHKNOCK_ACCOUNT_ID is not set")
    if not settings.api_token:
        raise ConfigError("PATHKNOCK_API_TOKEN is not set")

    return KnockConfig(
        account_id=settings.account_id,
        zone_id=settings.zone_id,
        api_token=settings.api_token,
        api_base=settings.api_base.rstrip("/"),
        origin_base=settings.origin_base.rstrip("/"),
        client_ip_header=settings.client_ip_header,
        http_timeout=settings.http_timeout,
        log_actions=settings.log_actions,
        events_path=settings.events_path,
        rules=load_rules(settings.rules_path),
    )
