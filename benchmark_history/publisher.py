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

"""
Benchmark result publisher

Adds one benchmark result to the history kept in the publish branch and
pushes it:

1. Switch to the publish branch
2. Pull the remote branch (unless skipped)
3. Append the result to data.js, add the viewer page if missing, commit
4. Push, retrying once with a rebase when another run pushed first
5. Compare against the previous commit's result and alert
6. Switch back to the original ref, whatever happened before
"""

import os
from typing import Callable, Optional

from benchmark_history import actions_log
from benchmark_history.comment_notifier import handle_alerts
from benchmark_history.config import Config
from benchmark_history.default_index_html import add_index_html_if_needed
from benchmark_history.errors import GitError
from benchmark_history.git import GitClient
from benchmark_history.github_context import CommentClient, RepositoryContext
from benchmark_history.history import Entry, load_history, merge_entry, store_history

REMOTE_REJECTED_MARKER = "[remote rejected]"


class BenchmarkPublisher:
    def __init__(
        self,
        config: Config,
        context: RepositoryContext,
        git: Optional[GitClient] = None,
        client_factory: Optional[Callable[[str], CommentClient]] = None,
    ):
        self.config = config
        self.context = context
        self.git = git or GitClient(context)
        self.client_factory = client_factory or (lambda token: CommentClient(token, context.api_url))

    def publish(self, bench: Entry) -> Optional[Entry]:
        """Publish `bench` and return the baseline it was compared against, if any."""
        config = self.config
        self.git.switch(config.gh_pages_branch)

        try:
            self._sync_branch()

            prev_bench = self._commit_result(bench)

            if config.github_token and config.auto_push:
                self._push_with_retry()
                actions_log.info(
                    f"Automatically pushed the generated commit to {config.gh_pages_branch} branch "
                    "since 'auto-push' is set to true"
                )
            else:
                actions_log.debug(
                    f"Auto-push to {config.gh_pages_branch} is skipped because it requires both github-token and auto-push"
                )

            # Alerts run after the push; a failing alert must not drop the result.
            if prev_bench is None:
                actions_log.debug("Alert check was skipped because previous benchmark result was not found")
            else:
                handle_alerts(
                    config.name,
                    bench,
                    prev_bench,
                    config.alert_threshold,
                    config.github_token,
                    config.comment_on_alert,
                    config.fail_on_alert,
                    config.alert_comment_cc_users,
                    self.context,
                    self.client_factory,
                )
            return prev_bench
        finally:
            self.git.checkout_previous()

    def _sync_branch(self):
        config = self.config
        is_private = self.context.is_private
        if not config.skip_fetch_gh_pages and (not is_private or config.github_token):
            self.git.pull(config.github_token, config.gh_pages_branch)
        elif is_private and not config.skip_fetch_gh_pages:
            actions_log.warning(
                "'git pull' was skipped. If you want to ensure GitHub Pages branch is up-to-date "
                "before generating a commit, please set 'github-token' input to pull GitHub pages branch"
            )

    def _commit_result(self, bench: Entry) -> Optional[Entry]:
        config = self.config
        data_dir = config.benchmark_data_dir_path
        data_path = config.data_path
        os.makedirs(data_dir, exist_ok=True)

        history = load_history(data_path)
        history, prev_bench = merge_entry(history, config.name, bench, self.context.html_url)
        store_history(data_path, history)
        self.git.add(data_path)

        add_index_html_if_needed(data_dir, self.git)

        self.git.commit(f"add {config.name} ({config.tool}) benchmark result for {bench.commit_id}")
        return prev_bench

    def _push_with_retry(self):
        token = self.config.github_token
        branch = self.config.gh_pages_branch
        try:
            self.git.push(token, branch)
            return
        except GitError as e:
            if REMOTE_REJECTED_MARKER not in str(e):
                raise

        actions_log.warning("Auto push failed because remote seemed to be updated after git pull. Retrying...")

        self.git.pull(token, branch, "--rebase")
        self.git.push(token, branch)

        actions_log.debug("Retrying auto push was successfully done")
