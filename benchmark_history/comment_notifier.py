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

"""Render performance alerts and send them as commit comments."""

from typing import Callable, List, Optional, Sequence

from benchmark_history import actions_log
from benchmark_history.config import DEFAULT_BENCHMARK_NAME
from benchmark_history.errors import ConfigError, PerformanceAlertError
from benchmark_history.github_context import CommentClient, CommentResponse, RepositoryContext
from benchmark_history.history import Entry, Measurement
from benchmark_history.regression_detector import Alert, find_alerts

PROJECT_URL = "https://github.com/rhysd/github-action-benchmark"


def format_value(bench: Measurement) -> str:
    text = f"`{bench.value}` {bench.unit}"
    if bench.range:
        text += f" (`{bench.range}`)"
    return text


def build_alert_comment(
    alerts: List[Alert],
    name: str,
    current: Entry,
    prev: Entry,
    threshold: float,
    context: RepositoryContext,
    cc_users: Sequence[str] = (),
) -> str:
    """Format alerts as a markdown comment body."""
    # The default suite name says nothing, leave it out.
    benchmark_text = "" if name == DEFAULT_BENCHMARK_NAME else f" **'{name}'**"
    if threshold == 0:
        title = "# Performance Report"
    else:
        title = "# :warning: **Performance Alert** :warning:"

    lines = [
        title,
        "",
        f"Possible performance regression was detected for benchmark{benchmark_text}.",
        f"Benchmark result of this commit is worse than the previous benchmark result exceeding threshold `{threshold}`.",
        "",
        f"| Benchmark suite | Current: {current.commit_id} | Previous: {prev.commit_id} | Ratio |",
        "|-|-|-|-|",
    ]
    for alert in alerts:
        lines.append(
            f"| `{alert.current.name}` | {format_value(alert.current)} | {format_value(alert.prev)} | `{alert.ratio}` |"
        )

    action_url = context.workflow_url()
    actions_log.debug(f"Action URL: {action_url}")
    lines.extend([
        "",
        f"This comment was automatically generated by [workflow]({action_url}) "
        f"using [github-action-benchmark]({PROJECT_URL}).",
    ])

    if cc_users:
        lines.extend(["", f"CC: {' '.join(cc_users)}"])

    return "\n".join(lines)


def leave_comment(commit_id: str, body: str, client: CommentClient, context: RepositoryContext) -> CommentResponse:
    """Post `body` as a comment on `commit_id`."""
    actions_log.debug("Sending alert comment:\n" + body)

    repository = context.require_repository()
    owner, name = context.owner_and_name()
    response = client.create_commit_comment(owner, name, commit_id, body)

    commit_url = f"{repository.get('html_url', '')}/commit/{commit_id}"
    actions_log.info(f"Alert comment was sent to {commit_url}. Response: {response.status} {response.url}")
    return response


def handle_alerts(
    name: str,
    current: Entry,
    prev: Entry,
    threshold: float,
    token: Optional[str],
    should_comment: bool,
    should_fail: bool,
    cc_users: Sequence[str],
    context: RepositoryContext,
    client_factory: Callable[[str], CommentClient],
):
    """Compare `current` against `prev`, then comment and/or fail as configured."""
    if not should_comment and not should_fail:
        actions_log.debug("Alert check was skipped because both comment-on-alert and fail-on-alert were disabled")
        return

    alerts = find_alerts(current, prev, threshold)
    if not alerts:
        actions_log.debug("No performance alert found happily")
        return

    actions_log.debug(f"Found {len(alerts)} alerts")
    body = build_alert_comment(alerts, name, current, prev, threshold, context, cc_users)
    message = body

    if should_comment:
        if not token:
            raise ConfigError("'comment-on-alert' is set but github-token is not set")
        response = leave_comment(current.commit_id, body, client_factory(token), context)
        message = body + f"\nComment was generated at {response.url}"

    if should_fail:
        actions_log.debug("Mark this workflow as fail since one or more alerts found")
        raise PerformanceAlertError(message)
