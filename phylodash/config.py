# phylodash/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# ---------- Upstream services ----------

EBI_REST_BASE = os.getenv("PHYLODASH_EBI_REST_BASE", "https://www.ebi.ac.uk/Tools/services/rest").rstrip("/")
CLUSTALO_URL = f"{EBI_REST_BASE}/clustalo"
SIMPLE_PHYLOGENY_URL = f"{EBI_REST_BASE}/simple_phylogeny"
NCBIBLAST_URL = f"{EBI_REST_BASE}/ncbiblast"

# EBI refuses submissions without a contact address
CONTACT_EMAIL = os.getenv("EBI_CONTACT_EMAIL", "phylodash@example.org")

RCSB_DATA_URL = os.getenv("PHYLODASH_RCSB_DATA_URL", "https://data.rcsb.org/rest/v1/core").rstrip("/")
RCSB_FILES_URL = os.getenv("PHYLODASH_RCSB_FILES_URL", "https://files.rcsb.org/view").rstrip("/")
RCSB_ENTRY_URL = "https://www.rcsb.org/structure"
ALPHAFOLD_API_URL = os.getenv("PHYLODASH_ALPHAFOLD_API_URL", "https://alphafold.ebi.ac.uk/api").rstrip("/")
ALPHAFOLD_ENTRY_URL = "https://alphafold.ebi.ac.uk/entry"

# ---------- Outbound HTTP ----------

HTTP_TIMEOUT_S = _env_float("PHYLODASH_HTTP_TIMEOUT", 45.0)
STATUS_TIMEOUT_S = _env_float("PHYLODASH_STATUS_TIMEOUT", 20.0)
HTTP_RETRIES = _env_int("PHYLODASH_HTTP_RETRIES", 1)
RETRY_DELAY_S = _env_float("PHYLODASH_RETRY_DELAY", 1.0)

# ---------- Metadata cache ----------

# seconds; 0 or negative disables expiry
METADATA_TTL_S = _env_float("PHYLODASH_METADATA_TTL", 7 * 24 * 3600)

# ---------- App ----------

LOG_LEVEL = os.getenv("PHYLODASH_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "PHYLODASH_CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]
