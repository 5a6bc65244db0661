# phylodash/services/structures.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

import httpx

from phylodash import config
from phylodash.schemas.structures import PdbCitation, PdbMetadata, StructureInfo
from phylodash.services.cache import MetadataCache
from phylodash.services.errors import PhyloDashError, ResultError
from phylodash.services.fetch import FetchOptions, fetch_with_retry

logger = logging.getLogger(__name__)

ENTRY_OPTIONS = FetchOptions(timeout=10.0, retries=1, retry_delay=0.5)
POLYMER_OPTIONS = FetchOptions(timeout=8.0, retries=1, retry_delay=0.4)
PDB_FILE_OPTIONS = FetchOptions(timeout=45.0, retries=2, retry_delay=1.5)
ALPHAFOLD_API_OPTIONS = FetchOptions(timeout=20.0, retries=2, retry_delay=1.2)
ALPHAFOLD_FILE_OPTIONS = FetchOptions(timeout=60.0, retries=2, retry_delay=1.5)


def normalize_pdb_id(pdb_id: str) -> str:
    return (pdb_id or "").strip().upper()


def _json_body(resp: httpx.Response, what: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise ResultError(f"{what} did not return valid JSON: {e}") from e


async def _get_json(client: httpx.AsyncClient, url: str, options: FetchOptions) -> Dict[str, Any]:
    resp = await fetch_with_retry(client, "GET", url, options=options, headers={"Accept": "application/json"})
    if not resp.is_success:
        raise ResultError(f"Metadata request failed ({resp.status_code}) for {url}")
    data = _json_body(resp, url)
    if not isinstance(data, dict):
        raise ResultError(f"Unexpected metadata payload from {url}")
    return data


async def _polymer_organisms(client: httpx.AsyncClient, pdb_id: str, entity_id: str) -> Set[str]:
    url = f"{config.RCSB_DATA_URL}/polymer_entity/{pdb_id}/{entity_id}"
    try:
        polymer = await _get_json(client, url, POLYMER_OPTIONS)
    except PhyloDashError as e:
        logger.warning("unable to fetch polymer entity metadata for %s/%s: %s", pdb_id, entity_id, e)
        return set()

    names: Set[str] = set()
    for src in polymer.get("rcsb_entity_source_organism") or []:
        if src.get("scientific_name"):
            names.add(src["scientific_name"])
    for src in polymer.get("entity_src_gen") or []:
        if src.get("organism_scientific"):
            names.add(src["organism_scientific"])
    return names


def _build_metadata(pdb_id: str, entry: Dict[str, Any], organisms: List[str]) -> PdbMetadata:
    keywords = entry.get("struct_keywords") or {}
    accession = entry.get("rcsb_accession_info") or {}
    resolutions = (entry.get("rcsb_entry_info") or {}).get("resolution_combined") or []
    methods = [
        item["method"].replace("_", " ")
        for item in entry.get("exptl") or []
        if item.get("method")
    ]

    citation = None
    src = entry.get("rcsb_primary_citation")
    if src:
        citation = PdbCitation(
            title=src.get("title"),
            journal=src.get("rcsb_journal_abbrev") or src.get("journal_abbrev"),
            year=src.get("year"),
            doi=src.get("pdbx_database_id_doi"),
            pubmed_id=src.get("pdbx_database_id_pub_med"),
            authors=src.get("rcsb_authors"),
        )

    return PdbMetadata(
        pdb_id=pdb_id,
        title=(entry.get("struct") or {}).get("title"),
        classification=keywords.get("pdbx_keywords") or keywords.get("text"),
        deposition_date=accession.get("deposit_date"),
        release_date=accession.get("initial_release_date"),
        experimental_methods=methods,
        resolution=resolutions[0] if resolutions else None,
        organisms=organisms,
        citation=citation,
    )


async def fetch_pdb_metadata(
    client: httpx.AsyncClient,
    pdb_id: str,
    cache: Optional[MetadataCache] = None,
) -> PdbMetadata:
    key = normalize_pdb_id(pdb_id)
    if not key:
        raise ResultError("A PDB identifier is required.")

    if cache is not None:
        cached = await asyncio.to_thread(cache.get, key)
        if cached is not None:
            return PdbMetadata.model_validate(cached)

    entry = await _get_json(client, f"{config.RCSB_DATA_URL}/entry/{key}", ENTRY_OPTIONS)
    entity_ids = (entry.get("rcsb_entry_container_identifiers") or {}).get("polymer_entity_ids") or []

    organisms: List[str] = []
    for names in await asyncio.gather(*(_polymer_organisms(client, key, e) for e in entity_ids)):
        for name in sorted(names):
            if name not in organisms:
                organisms.append(name)

    metadata = _build_metadata(key, entry, organisms)
    if cache is not None:
        await asyncio.to_thread(cache.set, key, metadata.model_dump(mode="json", by_alias=True))
    return metadata


def pdb_structure_info(pdb_id: str) -> StructureInfo:
    key = normalize_pdb_id(pdb_id)
    url = f"{config.RCSB_FILES_URL}/{key}.pdb"
    return StructureInfo(
        fetch_url=url,
        download_url=url,
        share_url=f"{config.RCSB_ENTRY_URL}/{key}",
        download_file_name=f"{key}.pdb",
        display_id=key,
        source_name="RCSB PDB",
    )


async def _download_text(client: httpx.AsyncClient, url: str, options: FetchOptions, what: str) -> str:
    resp = await fetch_with_retry(client, "GET", url, options=options)
    if not resp.is_success:
        raise ResultError(f"Failed to fetch PDB data for {what}. Status: {resp.status_code}")
    if not resp.text.strip():
        raise ResultError(f"PDB data for {what} was empty.")
    return resp.text


async def fetch_pdb_file(client: httpx.AsyncClient, pdb_id: str) -> str:
    info = pdb_structure_info(pdb_id)
    return await _download_text(client, info.fetch_url, PDB_FILE_OPTIONS, info.display_id)


async def resolve_alphafold_model(client: httpx.AsyncClient, uniprot_id: str) -> StructureInfo:
    uniprot_id = (uniprot_id or "").strip()
    resp = await fetch_with_retry(
        client, "GET", f"{config.ALPHAFOLD_API_URL}/prediction/{uniprot_id}", options=ALPHAFOLD_API_OPTIONS
    )
    if resp.status_code == 404:
        raise ResultError(
            f"No AlphaFold prediction found for UniProt ID: {uniprot_id}. "
            "The ID might be incorrect or reference a protein not modeled by AlphaFold."
        )
    if not resp.is_success:
        raise ResultError(f"Failed to fetch AlphaFold metadata. Status: {resp.status_code} {resp.reason_phrase}")

    data = _json_body(resp, "AlphaFold API")
    entries = [
        e for e in (data if isinstance(data, list) else [])
        if isinstance(e, dict) and e.get("pdbUrl") and e.get("uniprotStart") and e.get("uniprotEnd")
    ]
    if not entries:
        raise ResultError(f"No valid AlphaFold prediction entries with PDB URLs found for UniProt ID: {uniprot_id}.")

    # several fragments: the longest stands in for the main domain
    best = max(entries, key=lambda e: (e.get("uniprotEnd") or 0) - (e.get("uniprotStart") or 0))
    suffix = f" (longest of {len(entries)} fragments)" if len(entries) > 1 else ""

    return StructureInfo(
        fetch_url=best["pdbUrl"],
        download_url=best["pdbUrl"],
        share_url=f"{config.ALPHAFOLD_ENTRY_URL}/{best.get('uniprotAccession') or uniprot_id}",
        download_file_name=f"AF-{uniprot_id}.pdb",
        display_id=uniprot_id + suffix,
        source_name="AlphaFold DB",
        uniprot_start=best.get("uniprotStart"),
        uniprot_end=best.get("uniprotEnd"),
        fragment_count=len(entries),
    )


async def fetch_alphafold_file(client: httpx.AsyncClient, model: StructureInfo) -> str:
    return await _download_text(client, model.fetch_url, ALPHAFOLD_FILE_OPTIONS, model.fetch_url)
