from __future__ import annotations

import json
from typing import Any

_DECODER = json.JSONDecoder()


def decode_embedded_json(reply: str, expected: type[list] | type[dict]) -> Any:
    """Return the first JSON value of type ``expected`` embedded in model text.

    Language models wrap JSON in prose or code fences and sometimes add
    bracketed remarks after it. Each candidate opening bracket is decoded with
    ``raw_decode``, which stops at the end of the value and ignores the rest.
    """
    opener = "[" if expected is list else "{"
    kind = "array" if expected is list else "object"
    last_error: str | None = None
    idx = reply.find(opener)
    while idx != -1:
        try:
            value, _ = _DECODER.raw_decode(reply, idx)
        except json.JSONDecodeError as err:
            last_error = err.msg
        else:
            if isinstance(value, expected):
                return value
        idx = reply.find(opener, idx + 1)
    if last_error is not None:
        raise ValueError(f"invalid JSON in classifier reply: {last_error}")
    raise ValueError(f"no JSON {kind} found in classifier reply")
