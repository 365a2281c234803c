"""Server-Sent Events framing for streamed API responses.

Only ``data: `` lines carry payload. Comments, ``event:`` fields and blank
keep-alive lines are dropped. The payload ``[DONE]`` marks the end of the
stream and is never decoded.
"""

from __future__ import annotations

from typing import NamedTuple

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


class Frames(NamedTuple):
    """Payload candidates found in one block of SSE text.

    ``tail`` is text to carry into the next chunk because it stops inside
    a frame prefix. ``last_terminated`` tells whether the final payload's
    line ended with a newline.
    """

    payloads: list[str]
    tail: str
    last_terminated: bool


def is_pending_prefix(line: str) -> bool:
    """True when an unterminated line has not reached its payload yet."""
    if DATA_PREFIX.startswith(line):
        return True
    return line.startswith(DATA_PREFIX) and not line[len(DATA_PREFIX):].strip()


def _payload(line: str) -> str | None:
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    if not payload.strip():
        return None
    if payload.strip() == DONE_MARKER:
        return DONE_MARKER
    return payload


def split_frames(text: str) -> Frames:
    """Extract ``data: `` payload candidates from a block of SSE text.

    Terminated lines are stripped on both sides. The final unterminated
    line keeps its trailing whitespace, since it may be the first half of
    a JSON string split by the transport.
    """
    *complete, last = text.split("\n")
    last = last.lstrip()

    tail = ""
    if last and is_pending_prefix(last):
        tail, last = last, ""

    payloads = []
    for line in complete:
        payload = _payload(line.strip())
        if payload is not None:
            payloads.append(payload)
    last_terminated = True
    payload = _payload(last)
    if payload is not None:
        payloads.append(payload)
        last_terminated = False
    return Frames(payloads, tail, last_terminated)
