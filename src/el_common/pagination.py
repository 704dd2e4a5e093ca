"""Opaque keyset-pagination cursors.

A cursor wraps the last seen sort key in Base64 JSON so clients cannot rely
on its shape. Most lists sort by primary key alone (BIGINT ledger ids or
ordered string ids); ranked lists carry a compound key.
"""

import base64
import json


def _encode(payload: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def _decode(cursor: str) -> dict | None:
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
    except (ValueError, TypeError):
        return None
    return payload if isinstance(payload, dict) else None


def cursor_encode(last_id: int | str) -> str:
    return _encode({"id": last_id})


def cursor_decode(cursor: str | None) -> int | str | None:
    """Decode a cursor back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    payload = _decode(cursor)
    last_id = payload.get("id") if payload else None
    return last_id if isinstance(last_id, (int, str)) else None


def keyset_encode(**fields: int | str) -> str:
    return _encode(fields)


def keyset_decode(cursor: str | None, **types: type) -> dict | None:
    """Decode a compound cursor, checking each named field's type.

    None if the cursor is absent, malformed, or any field is missing.
    """
    if cursor is None:
        return None
    payload = _decode(cursor)
    if payload is None:
        return None
    for name, expected in types.items():
        value = payload.get(name)
        if not isinstance(value, expected) or isinstance(value, bool):
            return None
    return {name: payload[name] for name in types}
