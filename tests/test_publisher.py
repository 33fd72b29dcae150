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

import os
from unittest import mock

import pytest

from benchmark_history.config import Config, ToolType
from benchmark_history.errors import GitError, PerformanceAlertError
from benchmark_history.history import load_history
from benchmark_history.github_context import CommentResponse
from benchmark_history.publisher import BenchmarkPublisher
from conftest import FakeGit, make_entry, remote_rejected_error

DATA_PATH = os.path.join("dev", "bench", "data.js")
INDEX_PATH = os.path.join("dev", "bench", "index.html")


@pytest.fixture(autouse=True)
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def make_config(**overrides):
    values = dict(
        name="Benchmark",
        tool=ToolType.CARGO,
        output_file_path="output.json",
        github_token="token",
        auto_push=True,
    )
    values.update(overrides)
    return Config(**values)


def make_publisher(config, context, git, client=None):
    factory = mock.Mock(return_value=client or mock.Mock())
    return BenchmarkPublisher(config, context, git=git, client_factory=factory), factory


def test_first_publish_runs_every_step_without_alert_check(context):
    git = FakeGit()
    config = make_config(comment_on_alert=True, fail_on_alert=True, alert_threshold=0)
    publisher, factory = make_publisher(config, context, git)

    baseline = publisher.publish(make_entry("abc", [("bench", 100)]))

    assert baseline is None
    assert git.calls == [
        ("switch", "gh-pages"),
        ("pull", "token", "gh-pages"),
        ("add", DATA_PATH),
        ("add", INDEX_PATH),
        ("commit", "add Benchmark (cargo) benchmark result for abc"),
        ("push", "token", "gh-pages"),
        ("checkout", "-"),
    ]
    factory.assert_not_called()

    history = load_history(DATA_PATH)
    assert history.repo_url == "https://github.com/user/repo"
    assert [e.commit_id for e in history.entries["Benchmark"]] == ["abc"]


def test_progress_is_logged_as_plain_lines(context, capsys):
    publisher, _ = make_publisher(make_config(), context, FakeGit())
    publisher.publish(make_entry("abc", [("bench", 100)]))

    lines = capsys.readouterr().out.splitlines()
    assert f"Created default index.html at {INDEX_PATH}" in lines
    assert "Automatically pushed the generated commit to gh-pages branch since 'auto-push' is set to true" in lines


def test_second_publish_keeps_existing_index_html(context):
    publisher, _ = make_publisher(make_config(), context, FakeGit())
    publisher.publish(make_entry("a", [("bench", 100)]))

    git = FakeGit()
    publisher, _ = make_publisher(make_config(), context, git)
    baseline = publisher.publish(make_entry("b", [("bench", 100)]))

    assert baseline.commit_id == "a"
    assert ("add", INDEX_PATH) not in git.calls
    assert len(load_history(DATA_PATH).entries["Benchmark"]) == 2


def test_regression_fails_after_push_and_restores_ref(context):
    publisher, _ = make_publisher(make_config(), context, FakeGit())
    publisher.publish(make_entry("a", [("bench", 100)]))

    git = FakeGit()
    publisher, _ = make_publisher(make_config(fail_on_alert=True), context, git)
    with pytest.raises(PerformanceAlertError):
        publisher.publish(make_entry("b", [("bench", 300)]))

    assert git.names()[-2:] == ["push", "checkout"]


def test_regression_comment_is_left(context):
    publisher, _ = make_publisher(make_config(), context, FakeGit())
    publisher.publish(make_entry("a", [("bench", 100)]))

    client = mock.Mock()
    client.create_commit_comment.return_value = CommentResponse(201, "https://comment", {})
    publisher, factory = make_publisher(make_config(comment_on_alert=True), context, FakeGit(), client)
    publisher.publish(make_entry("b", [("bench", 300)]))

    factory.assert_called_once_with("token")
    assert client.create_commit_comment.call_args[0][:3] == ("user", "repo", "b")


def test_remote_rejected_push_is_retried_once_after_rebase(context):
    git = FakeGit(push_errors=[remote_rejected_error()])
    publisher, _ = make_publisher(make_config(), context, git)

    publisher.publish(make_entry("abc", [("bench", 100)]))

    assert git.calls[-4:] == [
        ("push", "token", "gh-pages"),
        ("pull", "token", "gh-pages", "--rebase"),
        ("push", "token", "gh-pages"),
        ("checkout", "-"),
    ]


def test_second_rejection_is_fatal(context):
    git = FakeGit(push_errors=[remote_rejected_error(), remote_rejected_error()])
    publisher, _ = make_publisher(make_config(), context, git)

    with pytest.raises(GitError):
        publisher.publish(make_entry("abc", [("bench", 100)]))

    assert git.names().count("push") == 2
    assert git.names()[-1] == "checkout"


def test_other_push_errors_are_not_retried(context):
    error = GitError(["push"], 128, "fatal: unable to access 'https://github.com/user/repo.git/': Could not resolve host")
    git = FakeGit(push_errors=[error])
    publisher, _ = make_publisher(make_config(), context, git)

    with pytest.raises(GitError) as excinfo:
        publisher.publish(make_entry("abc", [("bench", 100)]))

    assert excinfo.value is error
    assert git.names().count("push") == 1
    assert ("pull", "token", "gh-pages", "--rebase") not in git.calls
    assert git.names()[-1] == "checkout"


def test_switch_failure_is_fatal_without_restore(context):
    git = FakeGit(switch_error=GitError(["switch", "gh-pages"], 128, "fatal: invalid reference: gh-pages"))
    publisher, _ = make_publisher(make_config(), context, git)

    with pytest.raises(GitError):
        publisher.publish(make_entry("abc", [("bench", 100)]))

    assert git.calls == [("switch", "gh-pages")]
    assert not os.path.exists(DATA_PATH)


def test_pull_failure_still_restores_ref(context):
    git = FakeGit(pull_error=GitError(["pull"], 1, "fatal: couldn't find remote ref gh-pages"))
    publisher, _ = make_publisher(make_config(), context, git)

    with pytest.raises(GitError):
        publisher.publish(make_entry("abc", [("bench", 100)]))

    assert git.names() == ["switch", "pull", "checkout"]


def test_skip_fetch_does_not_pull(context):
    git = FakeGit()
    publisher, _ = make_publisher(make_config(skip_fetch_gh_pages=True), context, git)

    publisher.publish(make_entry("abc", [("bench", 100)]))

    assert "pull" not in git.names()


def test_private_repository_without_token_skips_pull_and_push(context, capsys):
    context.repository["private"] = True
    git = FakeGit()
    publisher, _ = make_publisher(make_config(github_token=None, auto_push=False), context, git)

    publisher.publish(make_entry("abc", [("bench", 100)]))

    assert git.names() == ["switch", "add", "add", "commit", "checkout"]
    assert "::warning::'git pull' was skipped" in capsys.readouterr().out


def test_public_repository_without_token_pulls_from_origin(context):
    git = FakeGit()
    publisher, _ = make_publisher(make_config(github_token=None, auto_push=False), context, git)

    publisher.publish(make_entry("abc", [("bench", 100)]))

    assert git.calls[1] == ("pull", None, "gh-pages")
    assert "push" not in git.names()


def test_rerun_of_same_commit_skips_alert_check(context):
    publisher, _ = make_publisher(make_config(), context, FakeGit())
    publisher.publish(make_entry("a", [("bench", 100)]))

    publisher, factory = make_publisher(make_config(fail_on_alert=True, comment_on_alert=True), context, FakeGit())
    assert publisher.publish(make_entry("a", [("bench", 1000)])) is None
    factory.assert_not_called()


def test_custom_data_dir_and_name(context):
    git = FakeGit()
    config = make_config(name="My Suite", tool=ToolType.GO, benchmark_data_dir_path="bench/go")
    publisher, _ = make_publisher(config, context, git)

    publisher.publish(make_entry("abc", [("BenchFib", 10, "ns/op")], tool="go"))

    data_path = os.path.join("bench", "go", "data.js")
    assert ("add", data_path) in git.calls
    assert ("commit", "add My Suite (go) benchmark result for abc") in git.calls
    assert list(load_history(data_path).entries) == ["My Suite"]
