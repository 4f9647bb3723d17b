"""Test doubles shared across unit tests."""

import json
from typing import Dict, Iterable, Optional
from unittest.mock import Mock


def make_response(status_code: int = 200, payload=None, text: Optional[str] = None):
    """Build a requests.Response double with the given status and body."""
    response = Mock()
    response.status_code = status_code
    if text is not None:
        response.content = text.encode("utf-8")
        response.text = text
        response.json.side_effect = ValueError("No JSON object could be decoded")
    elif payload is None:
        response.content = b""
        response.text = ""
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        body = json.dumps(payload)
        response.content = body.encode("utf-8")
        response.text = body
        response.json.return_value = payload
    return response


class InMemoryKeyValue:
    """Dict-backed replacement for KeyValueRepository."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get_value(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def put_value(self, key: str, value: str) -> bool:
        self.data[key] = value
        return True

    def delete_values(self, keys: Iterable[str]) -> bool:
        for key in keys:
            self.data.pop(key, None)
        return True
