# phylodash/api/structures.py
from __future__ import annotations
from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from urllib.parse import quote
import httpx

from phylodash.api.deps import get_http_client, get_metadata_cache
from phylodash.schemas.structures import PdbMetadata, StructureInfo
from phylodash.services import structures
from phylodash.services.cache import MetadataCache

router = APIRouter(prefix="/api/structures", tags=["structures"])


def _pdb_text(body: str, filename: str) -> PlainTextResponse:
    headers = {"Content-Disposition": f"inline; filename*=UTF-8''{quote(filename)}"}
    return PlainTextResponse(body, media_type="chemical/x-pdb", headers=headers)


@router.get("/pdb/{pdb_id}/metadata", response_model=PdbMetadata, response_model_exclude_none=True)
async def pdb_metadata(
    pdb_id: str,
    client: httpx.AsyncClient = Depends(get_http_client),
    cache: MetadataCache = Depends(get_metadata_cache),
):
    return await structures.fetch_pdb_metadata(client, pdb_id, cache)


@router.get("/pdb/{pdb_id}", response_model=StructureInfo)
def pdb_info(pdb_id: str):
    return structures.pdb_structure_info(pdb_id)


@router.get("/pdb/{pdb_id}/file")
async def pdb_file(pdb_id: str, client: httpx.AsyncClient = Depends(get_http_client)):
    info = structures.pdb_structure_info(pdb_id)
    return _pdb_text(await structures.fetch_pdb_file(client, pdb_id), info.download_file_name)


@router.get("/alphafold/{uniprot_id}", response_model=StructureInfo, response_model_exclude_none=True)
async def alphafold_info(uniprot_id: str, client: httpx.AsyncClient = Depends(get_http_client)):
    return await structures.resolve_alphafold_model(client, uniprot_id)


@router.get("/alphafold/{uniprot_id}/file")
async def alphafold_file(uniprot_id: str, client: httpx.AsyncClient = Depends(get_http_client)):
    model = await structures.resolve_alphafold_model(client, uniprot_id)
    return _pdb_text(await structures.fetch_alphafold_file(client, model), model.download_file_name)
