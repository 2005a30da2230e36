"""Gerrit REST API client."""

import json
import logging
from typing import Any
from urllib.parse import quote

import requests

from ..models import ChangeMetadata, RevisionInfo


logger = logging.getLogger(__name__)

# Gerrit prefixes JSON responses to defeat cross-site script inclusion
XSSI_PREFIX = ")]}'"

DEFAULT_TIMEOUT = 30


class GerritError(RuntimeError):
    """Raised when a Gerrit request fails."""


class ChangeNotFoundError(GerritError):
    """Raised when Gerrit has no change matching an identifier."""

    def __init__(self, change_id: str):
        self.change_id = change_id
        super().__init__(f"change {change_id} not found")


class GerritClient:
    """Client for the parts of the Gerrit API needed to trigger builds."""

    def __init__(
        self,
        url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        """Initialize the Gerrit client.

        Args:
            url: Gerrit server URL, without a project path.
            username: HTTP username. Requests are anonymous without one.
            password: HTTP password.
            timeout: Per-request timeout in seconds.
            session: Session to use instead of a new one.
        """
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.authenticated = bool(username and password)
        if self.authenticated:
            self.session.auth = (username, password)

    def _api_url(self, path: str) -> str:
        # authenticated endpoints live under /a/
        prefix = "/a" if self.authenticated else ""
        return f"{self.url}{prefix}{path}"

    def _api_get(self, path: str, params: Any = None) -> Any:
        url = self._api_url(path)
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise GerritError(f"request to {url} failed: {e}") from e

        if response.status_code == 404:
            return None
        if not response.ok:
            raise GerritError(f"GET {url} returned HTTP {response.status_code}: {response.text[:200]}")

        return parse_response(response.text)

    def get_change(self, change_id: str) -> ChangeMetadata:
        """Fetch a change with all of its revisions and label votes.

        Args:
            change_id: Change number, Change-Id, or ``project~branch~Change-Id``.

        Raises:
            ChangeNotFoundError: If no change matches.
            GerritError: On any other failure.
        """
        path = f"/changes/{quote(change_id, safe='~%')}"
        data = self._api_get(path, params=[("o", "ALL_REVISIONS"), ("o", "DETAILED_LABELS")])
        if data is None:
            raise ChangeNotFoundError(change_id)
        return change_from_json(data)


def parse_response(body: str) -> Any:
    """Decode a Gerrit JSON response body."""
    if body.startswith(XSSI_PREFIX):
        body = body[len(XSSI_PREFIX) :]
    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise GerritError(f"Invalid JSON response: {body[:200]}") from e


def change_from_json(data: dict[str, Any]) -> ChangeMetadata:
    """Convert a Gerrit ChangeInfo entity to ChangeMetadata."""
    revisions = {
        sha: RevisionInfo(ref=info.get("ref", ""), patchset=info.get("_number", 0))
        for sha, info in (data.get("revisions") or {}).items()
    }

    labels: dict[str, list[int]] = {}
    for name, label in (data.get("labels") or {}).items():
        labels[name] = [vote["value"] for vote in label.get("all", []) if "value" in vote]

    return ChangeMetadata(
        number=data["_number"],
        branch=data.get("branch", ""),
        current_revision=data.get("current_revision", ""),
        revisions=revisions,
        labels=labels,
    )
