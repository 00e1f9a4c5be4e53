"""
IRIS REST API client.

Outbound HTTP from tools and the submission wizard to the IRIS backend goes
through this class:
  - Single attempt per call. Submissions are never retried automatically;
    the user resubmits.
  - Timeout: 30 s by default (configurable per client)
  - Non-2xx responses and network errors raise ApiClientError

Testability: pass a mock `session` to IrisApiClient() instead of letting it
create a real requests.Session.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 30


class ApiClientError(Exception):
    """Raised when an IRIS API call fails.

    Attributes:
        status_code: HTTP status (None for network-level failures).
        body:        Parsed JSON error body when the server sent one.
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class IrisApiClient:
    """Thin JSON client for the IRIS backend.

    Usage:
        client = IrisApiClient("https://iris.example.org")
        rows = client.get_certification_matrix()
        client.patch_irb_application(7, {"workflow_status": "submitted", ...})
    """

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: int = _DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: requests.Session | None = session

    @classmethod
    def from_config(cls, config, session: requests.Session | None = None) -> "IrisApiClient":
        """Build from a Flask config mapping (IRIS_API_BASE_URL / IRIS_API_TIMEOUT)."""
        return cls(
            config["IRIS_API_BASE_URL"],
            session=session,
            timeout=int(config.get("IRIS_API_TIMEOUT", _DEFAULT_TIMEOUT)),
        )

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Core request dispatcher ───────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        kwargs: dict[str, Any] = {
            "headers": {"Accept": "application/json"},
            "timeout": self.timeout,
        }
        if json_body is not None:
            kwargs["json"] = json_body
        if params:
            kwargs["params"] = params

        t0 = time.perf_counter()
        try:
            resp = self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            logger.warning("IRIS API %s %s failed: %s", method, path, exc)
            raise ApiClientError(f"Network error calling {path}: {exc}") from exc
        duration_ms = (time.perf_counter() - t0) * 1000

        try:
            body = resp.json() if resp.content else None
        except ValueError:
            body = None

        if not resp.ok:
            message = body.get("error") if isinstance(body, dict) else None
            logger.warning("IRIS API %s %s → %d (%.0fms)", method, path, resp.status_code, duration_ms)
            raise ApiClientError(
                message or f"{method} {path} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=body,
            )

        logger.debug("IRIS API %s %s → %d (%.0fms)", method, path, resp.status_code, duration_ms)
        return body

    # ── Endpoints ─────────────────────────────────────────────────────────────

    def get_certification_matrix(self) -> list[dict]:
        return self._request("GET", "/api/certifications/matrix") or []

    def get_irb_application(self, application_id: int) -> dict:
        return self._request("GET", f"/api/irb-applications/{application_id}")

    def patch_irb_application(self, application_id: int, payload: dict) -> dict:
        return self._request("PATCH", f"/api/irb-applications/{application_id}", json_body=payload)
