# phylodash/services/ebi.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional

import httpx

from phylodash import config
from phylodash.services.errors import ResultError, StatusError, SubmissionError
from phylodash.services.fetch import FetchOptions, fetch_with_retry

logger = logging.getLogger(__name__)

TEXT_HEADERS = {"Accept": "text/plain"}


class RemoteJobStatus(str, Enum):
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    FAILURE = "FAILURE"
    PENDING = "PENDING"

    @classmethod
    def parse(cls, text: str) -> "RemoteJobStatus":
        token = (text or "").strip().upper()
        if not token or token == "QUEUED":
            return cls.PENDING
        try:
            return cls(token)
        except ValueError:
            # ERROR, NOT_FOUND and anything new upstream invents
            logger.warning("unrecognised upstream job status %r, treating as failure", token)
            return cls.FAILURE

    @property
    def in_progress(self) -> bool:
        return self in (RemoteJobStatus.RUNNING, RemoteJobStatus.PENDING)


class RemoteTool:
    """
    Client for one EMBL-EBI job dispatcher tool (clustalo, simple_phylogeny, ncbiblast...).

    Follows the dispatcher's REST layout: POST {base}/run, GET {base}/status/{id},
    GET {base}/result/{id}/{type}.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        client: httpx.AsyncClient,
        *,
        label: Optional[str] = None,
        email: str = config.CONTACT_EMAIL,
        request_options: Optional[FetchOptions] = None,
        status_options: Optional[FetchOptions] = None,
    ):
        self.name = name
        self.label = label or name
        self.base_url = base_url.rstrip("/")
        self.client = client
        self.email = email
        self.request_options = request_options or FetchOptions()
        self.status_options = status_options or FetchOptions(timeout=config.STATUS_TIMEOUT_S)

    def result_url(self, job_id: str, result_type: str) -> str:
        return f"{self.base_url}/result/{job_id}/{result_type}"

    async def submit(self, params: Dict[str, str]) -> str:
        form = dict(params)
        seq = form.get("sequence")
        if seq is not None and not seq.endswith("\n"):
            form["sequence"] = seq + "\n"
        form["email"] = self.email

        resp = await fetch_with_retry(
            self.client,
            "POST",
            f"{self.base_url}/run",
            options=self.request_options,
            data=form,
            headers=TEXT_HEADERS,
        )
        body = resp.text.strip()
        if not resp.is_success:
            raise SubmissionError(f"EMBL-EBI {self.label} submission failed: {body or resp.reason_phrase}")
        if not body:
            raise SubmissionError(f"{self.label} submission did not return a job identifier.")

        logger.info("submitted %s job %s", self.name, body)
        return body

    async def get_status(self, job_id: str) -> RemoteJobStatus:
        resp = await fetch_with_retry(
            self.client,
            "GET",
            f"{self.base_url}/status/{job_id}",
            options=self.status_options,
            headers=TEXT_HEADERS,
        )
        # freshly submitted jobs 404 for a short while
        if resp.status_code == 404:
            return RemoteJobStatus.PENDING

        body = resp.text.strip()
        if not resp.is_success:
            raise StatusError(
                f"Failed to obtain status for job {job_id}. "
                f"EMBL-EBI responded with {resp.status_code}: {body or resp.reason_phrase}"
            )
        status = RemoteJobStatus.parse(body)
        logger.debug("%s job %s status %s", self.name, job_id, status.value)
        return status

    async def fetch_result(self, job_id: str, result_type: str, accept: str = "text/plain") -> str:
        resp = await fetch_with_retry(
            self.client,
            "GET",
            self.result_url(job_id, result_type),
            options=self.request_options,
            headers={"Accept": accept},
        )
        body = resp.text
        if not resp.is_success:
            raise ResultError(f"Failed to download {self.label} {result_type} result: {body.strip() or resp.reason_phrase}")
        if not body.strip():
            raise ResultError(f"{self.label} {result_type} result was empty.")
        return body
