# phylodash/api/deps.py
from __future__ import annotations
from fastapi import Request
import httpx

from phylodash.services.blast import BlastService
from phylodash.services.cache import MetadataCache
from phylodash.services.phylogeny import PhylogenyOrchestrator


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_metadata_cache(request: Request) -> MetadataCache:
    return request.app.state.metadata_cache


def get_orchestrator(request: Request) -> PhylogenyOrchestrator:
    return PhylogenyOrchestrator.from_client(get_http_client(request))


def get_blast_service(request: Request) -> BlastService:
    return BlastService.from_client(get_http_client(request))
