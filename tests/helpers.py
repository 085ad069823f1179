"""Builders for fake backend streams shared by the test modules."""
import json

import httpx

BASE_URL = "http://ollama.test"


def ndjson(*records) -> bytes:
    """Encode records as newline-delimited JSON; str records are used verbatim."""
    lines = [r if isinstance(r, str) else json.dumps(r, ensure_ascii=False) for r in records]
    return ("\n".join(lines) + "\n").encode()


def content(text: str) -> dict:
    return {"message": {"role": "assistant", "content": text}, "done": False}


def thinking(text: str) -> dict:
    return {"message": {"role": "assistant", "content": "", "thinking": text}, "done": False}


def tool_calls(*calls) -> dict:
    """``calls`` are ``(name, arguments)`` pairs."""
    return {
        "message": {
            "role": "assistant",
            "content": "",
            "tool_calls": [{"function": {"name": n, "arguments": a}} for n, a in calls],
        },
        "done": False,
    }


DONE = {"message": {"role": "assistant", "content": ""}, "done": True, "done_reason": "stop"}


async def _iterate(blocks):
    for block in blocks:
        yield block


class ScriptedBackend:
    """Fake chat backend answering each request with the next scripted reply.

    A reply is either an ``httpx.Response`` or a list of byte blocks streamed
    as separate reads.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content) if request.content else None)
        reply = self.replies.pop(0)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, content=_iterate(reply))

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


async def collect(turn) -> list:
    return [event async for event in turn]


def event_types(events) -> list:
    return [e.type for e in events]
