"""
HTTP client for the data exchange API.

Used by the operator console and by scripts. Upload progress for an import
is reported separately from the job's row progress: the callback reaches 100
when the request body has been sent, before any row has been evaluated.
"""
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests
from urllib3 import encode_multipart_formdata

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

TERMINAL_STATUSES = ("completed", "failed")


class DataExchangeClientError(Exception):
    """Base class for client-side failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class JobSubmissionError(DataExchangeClientError):
    """The API could not be reached or rejected the request."""
    pass


class JobWaitTimeout(DataExchangeClientError):
    pass


class ProgressReader:
    """
    File-like request body that reports how much of it has been read.

    ``requests`` sends objects with ``read`` in chunks and takes the
    Content-Length from ``len()``.
    """

    def __init__(self, body: bytes, on_progress: Optional[ProgressCallback] = None):
        self._body = body
        self._offset = 0
        self._on_progress = on_progress
        self._last_reported = -1
        self._report()

    def __len__(self) -> int:
        return len(self._body)

    def _report(self) -> None:
        if self._on_progress is None:
            return
        total = len(self._body)
        percent = 100 if total == 0 else int(self._offset * 100 / total)
        if percent > self._last_reported:
            self._last_reported = percent
            self._on_progress(percent)

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            size = len(self._body) - self._offset
        chunk = self._body[self._offset:self._offset + size]
        self._offset += len(chunk)
        self._report()
        return chunk


def _error_detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    detail = payload.get("detail") if isinstance(payload, dict) else None
    return str(detail or response.text or response.reason)


class DataExchangeClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, f"{self.base_url}{path}", **kwargs)
        except requests.exceptions.RequestException as e:
            raise JobSubmissionError(f"{method} {path} failed: {e}")
        if response.status_code >= 400:
            raise JobSubmissionError(
                f"{method} {path} returned {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        return response

    # -- registry and mapping --------------------------------------------

    def list_entities(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/entities").json()["entities"]

    def preview(self, content: bytes, file_name: str, entity_type: str, file_type: Optional[str] = None) -> Dict[str, Any]:
        data = {"entity_type": entity_type}
        if file_type:
            data["file_type"] = file_type
        return self._request(
            "POST", "/import-preview", files={"file": (file_name, content)}, data=data
        ).json()

    def auto_map(self, entity_type: str, columns: Sequence[str], mappings: Sequence[Dict[str, Any]] = ()) -> List[Dict[str, Any]]:
        payload = {"entity_type": entity_type, "columns": list(columns), "mappings": list(mappings)}
        return self._request("POST", "/auto-map", json=payload).json()["mappings"]

    # -- imports ---------------------------------------------------------

    def submit_import(
        self,
        content: bytes,
        file_name: str,
        entity_type: str,
        mappings: Sequence[Dict[str, Any]],
        *,
        file_type: Optional[str] = None,
        update_existing: bool = False,
        skip_errors: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """
        Upload a file and create an import job.

        Returns:
            The created job (status ``pending``).

        Raises:
            JobSubmissionError: transport failure or a 4xx/5xx response
        """
        fields = {
            "entity_type": entity_type,
            "mapping_json": json.dumps(list(mappings)),
            "update_existing": "true" if update_existing else "false",
            "skip_errors": "true" if skip_errors else "false",
            "file": (file_name, content),
        }
        if file_type:
            fields["file_type"] = file_type
        body, content_type = encode_multipart_formdata(fields)

        response = self._request(
            "POST",
            "/import-jobs",
            data=ProgressReader(body, on_progress),
            headers={"Content-Type": content_type},
        )
        job = response.json()["job"]
        logger.info("Submitted import job %s for %s", job["id"], entity_type)
        return job

    def get_job(self, job_id: str, kind: str = "import") -> Dict[str, Any]:
        return self._request("GET", f"/{kind}-jobs/{job_id}").json()["job"]

    def wait_for_job(
        self,
        job_id: str,
        *,
        kind: str = "import",
        poll_interval: float = 1.0,
        timeout: float = 600.0,
        not_found_grace: float = 5.0,
        on_update: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> Dict[str, Any]:
        """
        Poll a job until it reaches a terminal status.

        A 404 right after submission is tolerated for ``not_found_grace``
        seconds; the job row may not be visible yet.
        """
        started = time.monotonic()
        while True:
            elapsed = time.monotonic() - started
            try:
                job = self.get_job(job_id, kind)
            except JobSubmissionError as e:
                if e.status_code == 404 and elapsed < not_found_grace:
                    time.sleep(poll_interval)
                    continue
                raise
            if on_update is not None:
                on_update(job)
            if job["status"] in TERMINAL_STATUSES:
                return job
            if elapsed >= timeout:
                raise JobWaitTimeout(f"{kind} job {job_id} still {job['status']} after {timeout:.0f}s")
            time.sleep(poll_interval)

    # -- exports ---------------------------------------------------------

    def submit_export(
        self,
        entity_type: str,
        columns: Sequence[str],
        *,
        file_type: str = "csv",
        filter_expression: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "entity_type": entity_type,
            "file_type": file_type,
            "columns": list(columns),
            "filter": filter_expression,
        }
        return self._request("POST", "/export-jobs", json=payload).json()["job"]

    def download_export(self, job_id: str) -> bytes:
        return self._request("GET", f"/export-jobs/{job_id}/download").content

    # -- enterprise agreements -------------------------------------------

    def create_agreement_draft(self) -> Dict[str, Any]:
        return self._request("POST", "/agreement-drafts").json()["draft"]

    def upload_agreement_document(self, draft_id: str, content: bytes, file_name: str) -> Dict[str, Any]:
        return self._request(
            "PUT", f"/agreement-drafts/{draft_id}/document", files={"file": (file_name, content)}
        ).json()["draft"]

    def extract_rates(self, draft_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/agreement-drafts/{draft_id}/extract").json()["draft"]

    def save_agreement(self, draft_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/agreement-drafts/{draft_id}/save", json=fields).json()
