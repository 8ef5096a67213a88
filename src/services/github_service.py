from __future__ import annotations

import asyncio
import base64
import logging
import time
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.crud.artifact import artifact_crud
from src.models.artifact import Artifact

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Generated by WhatsApp AI Assistant"
INITIAL_COMMIT_MESSAGE = "Initial commit from AI Assistant"


def _b64(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


class GitHubService:
    """Repository creation and multi-file commits via the GitHub REST API."""

    def __init__(
        self,
        *,
        token: str | None = None,
        username: str | None = None,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token if token is not None else settings.github_token
        self.username = username if username is not None else settings.github_username
        self.api_url = api_url or settings.github_api_url
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github.v3+json",
            },
            timeout=settings.http_timeout_seconds,
            transport=self._transport,
        )

    def _repo_path(self, repo_name: str) -> str:
        return f"/repos/{self.username}/{repo_name}"

    async def create_repository(self, name: str, description: str | None, is_private: bool = False) -> dict[str, Any]:
        async with self._client() as client:
            r = await client.post(
                "/user/repos",
                json={"name": name, "description": description, "private": is_private, "auto_init": True},
            )
            r.raise_for_status()
            repo = r.json()

        logger.info("github_repository_created full_name=%s", repo.get("full_name"))
        return repo

    async def create_file(self, repo_name: str, file_path: str, content: str, message: str) -> dict[str, Any]:
        async with self._client() as client:
            r = await client.put(
                f"{self._repo_path(repo_name)}/contents/{file_path}",
                json={"message": message, "content": _b64(content)},
            )
            r.raise_for_status()

        logger.info("github_file_created repo=%s path=%s", repo_name, file_path)
        return r.json()

    async def create_multiple_files(
        self,
        repo_name: str,
        files: list[dict[str, str]],
        commit_message: str,
    ) -> dict[str, Any]:
        """Commit ``files`` on top of the default branch in a single commit."""

        repo_path = self._repo_path(repo_name)
        async with self._client() as client:
            r = await client.get(repo_path)
            r.raise_for_status()
            default_branch = r.json()["default_branch"]

            ref_path = f"{repo_path}/git/refs/heads/{default_branch}"
            r = await client.get(ref_path)
            r.raise_for_status()
            latest_commit_sha = r.json()["object"]["sha"]

            async def create_blob(file: dict[str, str]) -> dict[str, str]:
                resp = await client.post(
                    f"{repo_path}/git/blobs",
                    json={"content": _b64(file["content"]), "encoding": "base64"},
                )
                resp.raise_for_status()
                return {"path": file["path"], "mode": "100644", "type": "blob", "sha": resp.json()["sha"]}

            tree_items = await asyncio.gather(*(create_blob(f) for f in files))

            r = await client.post(
                f"{repo_path}/git/trees",
                json={"base_tree": latest_commit_sha, "tree": list(tree_items)},
            )
            r.raise_for_status()
            tree_sha = r.json()["sha"]

            r = await client.post(
                f"{repo_path}/git/commits",
                json={"message": commit_message, "tree": tree_sha, "parents": [latest_commit_sha]},
            )
            r.raise_for_status()
            commit = r.json()

            r = await client.patch(ref_path, json={"sha": commit["sha"]})
            r.raise_for_status()

        logger.info("github_files_committed repo=%s count=%d", repo_name, len(files))
        return commit

    async def build_project(
        self,
        session: AsyncSession,
        *,
        user_id: UUID,
        session_id: UUID,
        project_spec: dict[str, Any],
        timeout: float | None = None,
    ) -> tuple[Artifact, dict[str, Any]]:
        """Create the repository, record it as an artifact and commit the files.

        ``timeout`` bounds the commit step; on timeout or any other failure the
        artifact is marked failed and the error re-raised.
        """

        repo_name = f"{project_spec.get('name') or 'project'}-{int(time.time() * 1000)}"
        description = project_spec.get("description")

        repo = await self.create_repository(
            repo_name,
            description or DEFAULT_DESCRIPTION,
            bool(project_spec.get("is_private", False)),
        )

        artifact = await artifact_crud.create(
            session,
            obj_in={
                "user_id": user_id,
                "session_id": session_id,
                "type": "repository",
                "title": repo_name,
                "description": description,
                "url": repo.get("html_url"),
                "meta": {"repo_full_name": repo.get("full_name"), "repo_id": repo.get("id")},
                "status": "in_progress",
            },
        )
        await session.commit()

        files = project_spec.get("files") or [
            {"path": "README.md", "content": f"# {repo_name}\n\n{description or 'Project generated by AI'}"}
        ]

        try:
            await asyncio.wait_for(self.create_multiple_files(repo_name, files, INITIAL_COMMIT_MESSAGE), timeout)
        except Exception:
            logger.exception("github_build_failed artifact_id=%s", artifact.id)
            await artifact_crud.update(session, db_obj=artifact, obj_in={"status": "failed"})
            await session.commit()
            raise

        await artifact_crud.update(session, db_obj=artifact, obj_in={"status": "completed"})
        await session.commit()

        logger.info("github_project_built url=%s artifact_id=%s", repo.get("html_url"), artifact.id)
        return artifact, repo


github_service = GitHubService()
