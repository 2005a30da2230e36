"""Delivery of trigger payloads to GitHub repository_dispatch."""

import json
import logging
from typing import Any, Protocol

from github import Auth, Github, GithubException

from ..models import TriggerPayload


logger = logging.getLogger(__name__)


class DeliveryError(RuntimeError):
    """Raised when a dispatch event could not be delivered."""


class DispatchSink(Protocol):
    """Anything that can deliver a trigger payload to a repository."""

    def deliver(self, owner: str, repo: str, payload: TriggerPayload) -> None: ...


class GitHubDispatchSink:
    """Sends trigger payloads as GitHub repository_dispatch events."""

    def __init__(self, token: str, base_url: str | None = None, client: Github | None = None):
        """Initialize the sink.

        Args:
            token: GitHub personal access token (``public_repo`` scope suffices).
            base_url: API URL for GitHub Enterprise; None for github.com.
            client: Pre-built client, mainly for tests.
        """
        if client is None:
            kwargs: dict[str, Any] = {"auth": Auth.Token(token)}
            if base_url:
                kwargs["base_url"] = base_url
            client = Github(**kwargs)
        self._client = client

    def deliver(self, owner: str, repo: str, payload: TriggerPayload) -> None:
        self.send(owner, repo, payload.event_type, payload.to_client_payload())

    def send(self, owner: str, repo: str, event_type: str, client_payload: dict[str, Any]) -> None:
        """Send a raw repository_dispatch event.

        Raises:
            DeliveryError: If GitHub rejects the event.
        """
        logger.debug(
            f"repository_dispatch {event_type} to {owner}/{repo} with payload:\n"
            f"{json.dumps(client_payload, indent=2)}"
        )
        try:
            repository = self._client.get_repo(f"{owner}/{repo}", lazy=True)
            accepted = repository.create_repository_dispatch(event_type, client_payload)
        except GithubException as e:
            raise DeliveryError(f"failed to send {event_type} dispatch event to {owner}/{repo}: {e}") from e
        if not accepted:
            raise DeliveryError(f"{event_type} dispatch event to {owner}/{repo} was not accepted")
