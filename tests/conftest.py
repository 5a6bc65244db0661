from __future__ import annotations
import asyncio
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Tuple, Union

# keep the app's default sqlite file out of the working tree
os.environ.setdefault("PHYLODASH_DB", str(Path(tempfile.mkdtemp(prefix="phylodash-test-")) / "test.db"))

import httpx
import pytest

from phylodash import config
from phylodash.services.ebi import RemoteTool
from phylodash.services.fetch import FetchOptions
from phylodash.services.phylogeny import PhylogenyOrchestrator

Reply = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]

FAST = FetchOptions(timeout=5.0, retries=1, retry_delay=0)


class FakeUpstream:
    """Scripted stand-in for the remote services, plugged in through httpx.MockTransport."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.calls: List[httpx.Request] = []

    def add(self, method: str, url: str, *replies: Reply) -> "FakeUpstream":
        self.routes.setdefault((method.upper(), url), []).extend(replies)
        return self

    def text(self, method: str, url: str, body: str, status: int = 200) -> "FakeUpstream":
        return self.add(method, url, httpx.Response(status, text=body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, str(request.url))
        replies = self.routes.get(key)
        if not replies:
            raise AssertionError(f"unexpected upstream call {key}")
        # the last scripted reply repeats
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def urls(self) -> List[str]:
        return [f"{r.method} {r.url}" for r in self.calls]


def run(coro):
    return asyncio.run(coro)


def make_orchestrator(client: httpx.AsyncClient) -> PhylogenyOrchestrator:
    clustal = RemoteTool(
        "clustalo", config.CLUSTALO_URL, client,
        label="Clustal Omega", request_options=FAST, status_options=FAST,
    )
    simple = RemoteTool(
        "simple_phylogeny", config.SIMPLE_PHYLOGENY_URL, client,
        label="Simple Phylogeny", request_options=FAST, status_options=FAST,
    )
    return PhylogenyOrchestrator(clustal, simple)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def orchestrator(upstream: FakeUpstream) -> PhylogenyOrchestrator:
    return make_orchestrator(upstream.client())
