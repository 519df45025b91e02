"""Network adapter for the growth backend.

Every call returns an explicit result, ``Ok(value)`` or ``Err(RemoteUnavailable)``,
instead of raising, so callers decide on the local fallback themselves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional, Union

import requests

from . import config
from .errors import RemoteUnavailable
from .models import Child, GrowthChart, GrowthRecord, GrowthStats, Parent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    value: Any
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    error: RemoteUnavailable
    ok: ClassVar[bool] = False


Result = Union[Ok, Err]


class RemoteClient:
    def __init__(self, base_url: str = config.API_BASE_URL, session=None,
                 timeout: float = config.REQUEST_TIMEOUT,
                 token_provider: Optional[Callable[[], Optional[str]]] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self.token_provider = token_provider

    def _request(self, method: str, path: str, payload=None, params=None) -> Result:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = self.session.request(method, url, json=payload, params=params,
                                            headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            return Err(RemoteUnavailable(str(e)))

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            logger.warning("%s %s returned HTTP %s", method, url, response.status_code)
            return Err(RemoteUnavailable(f"HTTP {response.status_code}",
                                         status_code=response.status_code,
                                         payload=body if isinstance(body, dict) else None))
        if body is None:
            return Err(RemoteUnavailable(f"Invalid JSON from {url}", status_code=response.status_code))
        return Ok(body)

    @staticmethod
    def _decode(result: Result, convert: Callable[[Any], Any], unwrap: bool = True) -> Result:
        if not result.ok:
            return result
        body = result.value
        try:
            value = body["data"] if unwrap and isinstance(body, dict) and "data" in body else body
            return Ok(convert(value))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Unexpected response shape: %s", e)
            return Err(RemoteUnavailable(f"Unexpected response shape: {e}"))

    def get_children(self) -> Result:
        return self._decode(self._request("GET", "/children"),
                            lambda rows: [Child.from_dict(r) for r in rows])

    def get_growth_records(self, child_id: int) -> Result:
        return self._decode(self._request("GET", f"/growth/{child_id}/growth-records"),
                            lambda rows: [GrowthRecord.from_dict(r) for r in rows])

    def get_growth_stats(self, child_id: int) -> Result:
        return self._decode(self._request("GET", f"/growth/{child_id}/growth-stats"),
                            GrowthStats.from_dict)

    def get_growth_chart(self, child_id: int) -> Result:
        return self._decode(self._request("GET", f"/growth/{child_id}/growth-chart"),
                            GrowthChart.from_dict)

    def add_growth_record(self, child_id: int, payload: dict) -> Result:
        return self._decode(self._request("POST", f"/growth/{child_id}/growth-records", payload),
                            GrowthRecord.from_dict)

    def add_child(self, payload: dict) -> Result:
        return self._decode(self._request("POST", "/admin/add-child", payload), Child.from_dict)

    def validate_nik(self, nik: str) -> Result:
        return self._decode(self._request("GET", f"/admin/validate-nik/{nik}"),
                            lambda body: {"available": bool(body["available"]),
                                          "message": body.get("message", "")},
                            unwrap=False)

    def get_parents(self, query: Optional[str] = None, limit: int = 20) -> Result:
        params = {"limit": min(max(int(limit), 1), 100)}
        if query and query.strip():
            params["q"] = query.strip()
        return self._decode(self._request("GET", "/admin/parents", params=params),
                            lambda rows: [Parent.from_dict(r) for r in rows])

    def health(self) -> Result:
        return self._request("GET", "/health")
