"""GraphQL client for the remote CodeChrono collector."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

import httpx

from .models import ActivityRecord, RevisionRecord

logger = logging.getLogger(__name__)

SYNC_ACTIVITY_MUTATION = """
mutation SyncActivity($input: [ActivityInput!]!) {
  syncActivity(input: $input) {
    success
    message
  }
}
"""

SYNC_COMMITS_MUTATION = """
mutation SyncCommits($input: [CommitInput!]!) {
  syncCommits(input: $input) {
    success
    message
  }
}
"""


class RemoteCollector(Protocol):
    def submit_activities(self, records: Sequence[ActivityRecord]) -> bool: ...

    def submit_revisions(self, records: Sequence[RevisionRecord]) -> bool: ...


class CollectorClient:
    """Submits record batches; ``True`` means the whole batch was accepted."""

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self._timeout = timeout
        self._transport = transport
        self._client = self._build_client(token)

    def update_token(self, token: str) -> None:
        old_client = self._client
        self._client = self._build_client(token)
        old_client.close()

    def submit_activities(self, records: Sequence[ActivityRecord]) -> bool:
        if not records:
            return True
        payload = [record.to_payload() for record in records]
        return self._submit(SYNC_ACTIVITY_MUTATION, "syncActivity", payload, "activities")

    def submit_revisions(self, records: Sequence[RevisionRecord]) -> bool:
        if not records:
            return True
        payload = [record.to_payload() for record in records]
        return self._submit(SYNC_COMMITS_MUTATION, "syncCommits", payload, "commits")

    def close(self) -> None:
        self._client.close()

    def _build_client(self, token: Optional[str]) -> httpx.Client:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return httpx.Client(
            headers=headers, timeout=self._timeout, transport=self._transport
        )

    def _submit(
        self, mutation: str, field: str, payload: list[dict[str, Any]], label: str
    ) -> bool:
        try:
            response = self._client.post(
                self.endpoint,
                json={"query": mutation, "variables": {"input": payload}},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Failed to sync %s: %s", label, exc)
            return False

        if not isinstance(body, dict):
            logger.error("Unexpected collector response for %s: %r", label, body)
            return False
        if body.get("errors"):
            logger.error("Collector rejected %s: %s", label, body["errors"])
            return False
        result = (body.get("data") or {}).get(field) or {}
        if not result.get("success"):
            logger.error(
                "Collector did not acknowledge %s: %s", label, result.get("message")
            )
            return False
        logger.info("Synced %d %s to %s", len(payload), label, self.endpoint)
        return True
