"""
Structured Event Log Parser

Parses NEP-297 event logs emitted by contracts:

    EVENT_JSON:{"standard": "...", "version": "...", "event": "...", "data": ...}

Provides:
- Envelope parsing (prefix, JSON, required keys)
- NEP-141 activity detection (ft_transfer / ft_mint / ft_burn)
- Field validation helpers: account ids and range-checked integers that may
  arrive as decimal strings

Parsers never raise on bad input. A log that doesn't match a schema returns
None (or False) for that schema.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

EVENT_JSON_PREFIX = "EVENT_JSON:"

NEP141_STANDARD = "nep141"
FT_TRANSFER = "ft_transfer"
FT_MINT = "ft_mint"
FT_BURN = "ft_burn"

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

MIN_ACCOUNT_ID_LEN = 2
MAX_ACCOUNT_ID_LEN = 64
ACCOUNT_ID_PATTERN = re.compile(r'^(([a-z\d]+[-_])*[a-z\d]+\.)*([a-z\d]+[-_])*[a-z\d]+$')

_logger = logging.getLogger("EventLogParser")


class FieldError(ValueError):
    """A payload field is missing or has the wrong shape."""


@dataclass(frozen=True)
class EventLog:
    """Parsed NEP-297 envelope."""
    standard: str
    version: str
    event: str
    data: Any

    def matches(self, standard: str, event: str) -> bool:
        return self.standard == standard and self.event == event


def parse_event_log(log: str) -> Optional[EventLog]:
    """
    Parse an `EVENT_JSON:` log line.

    Returns None for plain-text logs, invalid JSON, or envelopes missing
    `standard`, `version`, `event` or `data`.
    """
    if not isinstance(log, str) or not log.startswith(EVENT_JSON_PREFIX):
        return None

    try:
        envelope = json.loads(log[len(EVENT_JSON_PREFIX):])
    except ValueError:
        return None

    if not isinstance(envelope, dict):
        return None

    standard = envelope.get("standard")
    version = envelope.get("version")
    event = envelope.get("event")
    if not isinstance(standard, str) or not isinstance(version, str) or not isinstance(event, str):
        return None
    if "data" not in envelope:
        return None

    return EventLog(standard=standard, version=version, event=event, data=envelope["data"])


# =========================================================================
# Field validation
# =========================================================================

def is_valid_account_id(value: Any) -> bool:
    """NEAR account id syntax check (length and separator rules)."""
    if not isinstance(value, str):
        return False
    if not MIN_ACCOUNT_ID_LEN <= len(value) <= MAX_ACCOUNT_ID_LEN:
        return False
    return ACCOUNT_ID_PATTERN.match(value) is not None


def parse_uint(value: Any, max_value: int) -> int:
    """
    Parse an unsigned integer from a decimal string or a JSON integer.

    Floats and booleans are rejected so large balances never pass through a
    floating point approximation.
    """
    if isinstance(value, bool):
        raise FieldError("expected integer, got bool")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        if not value.isdigit() or not value.isascii():
            raise FieldError(f"not a decimal integer: {value!r}")
        result = int(value)
    else:
        raise FieldError(f"expected integer, got {type(value).__name__}")

    if not 0 <= result <= max_value:
        raise FieldError(f"integer out of range: {result}")
    return result


def require_uint(data: Dict[str, Any], key: str, max_value: int) -> int:
    if key not in data:
        raise FieldError(f"missing field: {key}")
    return parse_uint(data[key], max_value)


def optional_uint(data: Dict[str, Any], key: str, max_value: int) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    return parse_uint(value, max_value)


def require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise FieldError(f"missing or non-string field: {key}")
    return value


def require_account_id(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not is_valid_account_id(value):
        raise FieldError(f"invalid account id in {key}: {value!r}")
    return value


# =========================================================================
# NEP-141 activity
# =========================================================================

def _is_ft_transfer(entry: Dict[str, Any]) -> bool:
    require_account_id(entry, "old_owner_id")
    require_account_id(entry, "new_owner_id")
    require_uint(entry, "amount", U128_MAX)
    return True


def _is_ft_mint_or_burn(entry: Dict[str, Any]) -> bool:
    require_account_id(entry, "owner_id")
    require_uint(entry, "amount", U128_MAX)
    return True


_NEP141_SHAPES = {
    FT_TRANSFER: _is_ft_transfer,
    FT_MINT: _is_ft_mint_or_burn,
    FT_BURN: _is_ft_mint_or_burn,
}


def nep141_event_kind(log: str) -> Optional[str]:
    """
    Return the NEP-141 event name if the log is a well-formed
    ft_transfer / ft_mint / ft_burn event, otherwise None.

    `data` must be a non-empty list where every entry has the fields the
    event requires.
    """
    event = parse_event_log(log)
    if event is None or event.standard != NEP141_STANDARD:
        return None

    check = _NEP141_SHAPES.get(event.event)
    if check is None:
        return None

    entries: List[Any] = event.data if isinstance(event.data, list) else []
    if not entries:
        return None

    try:
        for entry in entries:
            if not isinstance(entry, dict):
                return None
            check(entry)
    except FieldError as e:
        _logger.debug(f"Ignoring malformed {event.event} log: {e}")
        return None

    return event.event


def has_nep141_activity(logs) -> bool:
    """True if any log is a recognized NEP-141 transfer/mint/burn event."""
    return any(nep141_event_kind(log) is not None for log in logs)
