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

"""Thin wrapper around the git command line."""

import re
import subprocess
from typing import List, Optional
from urllib.parse import urlparse

from benchmark_history import actions_log
from benchmark_history.errors import GitError
from benchmark_history.github_context import RepositoryContext

GIT_USER_NAME = "github-action-benchmark"
GIT_USER_EMAIL = "github@users.noreply.github.com"

_TOKEN_IN_URL = re.compile(r"x-access-token:[^@\s]*@")


def redact(text: str) -> str:
    """Hide access tokens embedded in remote URLs."""
    return _TOKEN_IN_URL.sub("x-access-token:***@", text)


class GitClient:
    """Runs git in the working copy of the publish branch."""

    def __init__(self, context: RepositoryContext, cwd: Optional[str] = None):
        self.context = context
        self.cwd = cwd

    def _server_host(self) -> str:
        return urlparse(self.context.server_url).netloc or "github.com"

    def remote_url(self, token: str) -> str:
        owner, name = self.context.owner_and_name()
        return f"https://x-access-token:{token}@{self._server_host()}/{owner}/{name}.git"

    def cmd(self, *args: str) -> str:
        """Run `git <args>` and return stdout. Raises GitError on failure."""
        argv: List[str] = [
            "git",
            "-c", f"user.name={GIT_USER_NAME}",
            "-c", f"user.email={GIT_USER_EMAIL}",
            # Drop the auth header actions/checkout sets so the token in the
            # remote URL is the one used.
            "-c", f"http.{self.context.server_url}/.extraheader=",
            *args,
        ]
        shown = [redact(a) for a in args]
        actions_log.debug(f"Executing Git: {' '.join(shown)}")

        result = subprocess.run(argv, cwd=self.cwd, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            raise GitError(shown, result.returncode, redact(result.stderr or ""), redact(result.stdout or ""))
        if result.stdout:
            actions_log.debug(redact(result.stdout))
        return result.stdout

    def switch(self, branch: str) -> str:
        return self.cmd("switch", branch)

    def add(self, path: str) -> str:
        return self.cmd("add", path)

    def commit(self, message: str) -> str:
        return self.cmd("commit", "-m", message)

    def pull(self, token: Optional[str], branch: str, *options: str) -> str:
        actions_log.debug(f"Executing 'git pull' for branch '{branch}' with options '{' '.join(options)}'")
        remote = self.remote_url(token) if token else "origin"
        return self.cmd("pull", remote, branch, *options)

    def push(self, token: str, branch: str, *options: str) -> str:
        actions_log.debug(f"Executing 'git push' to branch '{branch}' with options '{' '.join(options)}'")
        return self.cmd("push", self.remote_url(token), f"{branch}:{branch}", "--no-verify", *options)

    def checkout_previous(self) -> str:
        # `git switch -` refuses to go back to a detached HEAD, checkout does not.
        return self.cmd("checkout", "-")
