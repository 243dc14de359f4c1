"""The JSON envelope every HTTP endpoint answers with."""

from __future__ import annotations

from typing import Any

_CODES = {0: 200, -2: 400, -1: 500}


def json_back(message: str, ret: int, data: Any = None) -> dict[str, Any] | None:
    """Build the response body for a service result.

    ret 0 means success (code 200, with data when given), -2 a client
    error (400) and -1 a server error (500). Any other ret yields None,
    meaning no body is written.
    """
    code = _CODES.get(ret)
    if code is None:
        return None
    body: dict[str, Any] = {"code": code, "message": message}
    if ret == 0 and data is not None:
        body["data"] = data
    return body