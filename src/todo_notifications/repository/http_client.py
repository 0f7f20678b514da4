# src/todo_notifications/repository/http_client.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..todos.errors import CommitResolutionError
from ..todos.targets import Commit

logger = logging.getLogger(__name__)


def _make_timeout(settings) -> httpx.Timeout:
    connect_s = float(getattr(settings, "repository_connect_timeout_seconds", 5.0))
    read_s = float(getattr(settings, "repository_read_timeout_seconds", 15.0))
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _commit_from_json(data: Any, fallback_id: str) -> Commit:
    if not isinstance(data, dict):
        raise ValueError("Expected JSON object")
    return Commit(
        id=str(data.get("id") or fallback_id),
        message=str(data.get("message") or data.get("title") or ""),
        author_name=data.get("author_name"),
    )


class HttpProjectRepository:
    """Repository service of a single project, reached over HTTP."""

    def __init__(self, client: httpx.Client, project_id: int) -> None:
        self._client = client
        self.project_id = int(project_id)

    def _path(self, suffix: str) -> str:
        return f"/projects/{self.project_id}/repository/{suffix}"

    def commit(self, commit_id: str) -> Commit | None:
        """
        Fetch a commit.

        404 means the commit is gone (rewritten/deleted history) and returns None.
        Transport failures and server errors raise CommitResolutionError.
        """
        try:
            resp = self._client.get(self._path(f"commits/{commit_id}"))
        except httpx.HTTPError as e:
            raise CommitResolutionError(
                f"Repository unavailable for project {self.project_id}: {e.__class__.__name__}"
            ) from e

        if resp.status_code == 404:
            return None

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CommitResolutionError(
                f"Repository error for project {self.project_id}: HTTP {resp.status_code}"
            ) from e

        try:
            return _commit_from_json(resp.json(), commit_id)
        except ValueError as e:
            raise CommitResolutionError(f"Malformed commit payload for {commit_id}") from e

    def keep_around(self, commit_id: str) -> None:
        resp = self._client.post(self._path("keep_around"), json={"sha": commit_id})
        resp.raise_for_status()
        logger.debug("keep_around ok project=%s commit=%s", self.project_id, commit_id)


class HttpRepositoryProvider:
    """
    Hands out per-project repositories sharing one httpx.Client.

    The client is created lazily; no network access happens at construction.
    """

    def __init__(self, settings, *, transport: httpx.BaseTransport | None = None) -> None:
        base_url = (getattr(settings, "repository_base_url", "") or "").strip()
        if not base_url:
            raise RuntimeError("Repository base URL is not set. Set TODOS_REPOSITORY_BASE_URL in your .env.")

        self._base_url = base_url
        self._token = getattr(settings, "repository_token", None)
        self._timeout = _make_timeout(settings)
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is not None:
            return self._client

        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.Client(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self._client

    def repository_for(self, project_id: int) -> HttpProjectRepository:
        return HttpProjectRepository(self._get_client(), project_id)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
