# src/todo_notifications/repository/offline.py

from __future__ import annotations

import logging

from ..todos.targets import Commit, Target

logger = logging.getLogger(__name__)


class OfflineProjectRepository:
    """
    Repository stand-in used when no repository service is configured.

    Behavior:
    - keep_around -> logged no-op
    - commit      -> always "not found"
    """

    def __init__(self, project_id: int) -> None:
        self.project_id = int(project_id)

    def keep_around(self, commit_id: str) -> None:
        logger.debug("Offline: skipping keep_around project=%s commit=%s", self.project_id, commit_id)

    def commit(self, commit_id: str) -> Commit | None:
        return None


class OfflineRepositoryProvider:
    def repository_for(self, project_id: int) -> OfflineProjectRepository:
        return OfflineProjectRepository(project_id)

    def close(self) -> None:
        return


class OfflineEntityLookup:
    """Entity lookup for running without a host application: nothing resolves."""

    def find(self, target_type: str, target_id: int) -> Target | None:
        return None
