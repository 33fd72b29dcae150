# Copyright 2023 The NativeLink Authors. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Repository metadata of the running workflow and the commit comment API."""

import json
import os
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

import requests

from benchmark_history import actions_log
from benchmark_history.errors import CommentError, RepositoryContextError

DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_API_URL = "https://api.github.com"
REQUEST_TIMEOUT_SECONDS = 30


class RepositoryContext:
    """Read-only view of the repository that triggered the workflow."""

    def __init__(
        self,
        repository: Optional[Dict[str, Any]] = None,
        workflow: str = "",
        repo_slug: str = "",
        server_url: str = DEFAULT_SERVER_URL,
        api_url: str = DEFAULT_API_URL,
    ):
        self.repository = repository
        self.workflow = workflow
        self.repo_slug = repo_slug
        self.server_url = server_url.rstrip("/")
        self.api_url = api_url.rstrip("/")

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] = os.environ) -> "RepositoryContext":
        """Build the context from the variables set by the Actions runner."""
        payload: Dict[str, Any] = {}
        event_path = environ.get("GITHUB_EVENT_PATH", "")
        if event_path and os.path.exists(event_path):
            try:
                with open(event_path, "r", encoding="utf-8") as f:
                    payload = json.load(f)
            except (OSError, ValueError) as e:
                actions_log.warning(f"Could not read event payload at {event_path}: {e}")

        repository = payload.get("repository") if isinstance(payload, dict) else None
        return cls(
            repository=repository if isinstance(repository, dict) else None,
            workflow=environ.get("GITHUB_WORKFLOW", ""),
            repo_slug=environ.get("GITHUB_REPOSITORY", ""),
            server_url=environ.get("GITHUB_SERVER_URL", DEFAULT_SERVER_URL),
            api_url=environ.get("GITHUB_API_URL", DEFAULT_API_URL),
        )

    @property
    def html_url(self) -> str:
        return (self.repository or {}).get("html_url") or ""

    @property
    def is_private(self) -> bool:
        return bool((self.repository or {}).get("private", False))

    def require_repository(self) -> Dict[str, Any]:
        if not self.repository:
            raise RepositoryContextError("Repository information is not available in payload")
        return self.repository

    def owner_and_name(self) -> Tuple[str, str]:
        """Return (owner, repo), preferring GITHUB_REPOSITORY over the payload."""
        if "/" in self.repo_slug:
            owner, name = self.repo_slug.split("/", 1)
            return owner, name
        repository = self.require_repository()
        try:
            return repository["owner"]["login"], repository["name"]
        except (KeyError, TypeError):
            raise RepositoryContextError("Repository owner and name are not available in payload")

    def workflow_url(self) -> str:
        """Link to the runs of the current workflow."""
        repo_url = self.require_repository().get("html_url")
        if not repo_url:
            raise RepositoryContextError("Repository 'html_url' is not available in payload")
        return f"{repo_url}/actions?query=workflow%3A{quote(self.workflow)}"


class CommentResponse:
    def __init__(self, status: int, url: str, data: Dict[str, Any]):
        self.status = status
        self.url = url
        self.data = data


class CommentClient:
    """Minimal client for the commit comment endpoint of the REST API."""

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL, session: Optional[requests.Session] = None):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()

    def create_commit_comment(self, owner: str, repo: str, commit_id: str, body: str) -> CommentResponse:
        url = f"{self.api_url}/repos/{owner}/{repo}/commits/{commit_id}/comments"
        try:
            response = self.session.post(
                url,
                json={"body": body},
                headers={
                    "Authorization": f"token {self.token}",
                    "Accept": "application/vnd.github+json",
                },
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            raise CommentError(f"Failed to create commit comment on {commit_id}: {e}")
        if not 200 <= response.status_code < 300:
            raise CommentError(
                f"Failed to create commit comment on {commit_id}: {response.status_code} {response.text}",
                status=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise CommentError(
                f"Unexpected response for commit comment on {commit_id}: {e}", status=response.status_code
            )
        if not isinstance(data, dict):
            raise CommentError(
                f"Unexpected response for commit comment on {commit_id}: {data!r}", status=response.status_code
            )
        return CommentResponse(response.status_code, data.get("html_url", ""), data)
