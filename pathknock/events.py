import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pathknock.core import Rule
from pathknock.exceptions import LoggingError
from pathknock.lists import UpdateError, UpdateResult

logger = logging.getLogger(__name__)


def build_event(ip: str, path: str, rule: Rule, outcome: UpdateResult, now: datetime) -> dict:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    event = {
        "timestamp": now.astimezone(timezone.utc).isoformat(),
        "action": f"{rule.mode}_ip",
        "ip": ip,
        "path": path,
        "list_name": rule.name,
        "list_id": rule.list_id,
        "expiration_hours": rule.expiration_hours,
    }
    if isinstance(outcome, UpdateError):
        event["action"] = f"{rule.mode}_ip_failed"
        event["error"] = outcome.message
        event["errors"] = outcome.errors
    return event


def log_event(event: dict, events_path: Optional[Path] = None):
    try:
        line = json.dumps(event, ensure_ascii=False, default=str)
        logger.info("KNOCK_LOG: %s", line)
        if events_path is not None:
            events_path.parent.mkdir(parents=True, exist_ok=True)
            with open(events_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
    except (OSError, TypeError, ValueError) as exc:
        raise LoggingError(f"failed to emit knock event: {exc}") from exc


def record(
    ip: str,
    path: str,
    rule: Rule,
    outcome: UpdateResult,
    *,
    events_path: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Emit one structured knock event; never raises.

    Returns True when the event was written, False when the sink failed.
    """
    try:
        event = build_event(ip, path, rule, outcome, now or datetime.now(timezone.utc))
        log_event(event, events_path)
    except LoggingError as exc:
        logger.warning("Knock event for %s dropped: %s", ip, exc.detail)
        return False
    return True
