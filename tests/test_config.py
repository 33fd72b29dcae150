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

import dataclasses

import pytest

from benchmark_history.cli import build_parser
from benchmark_history.config import (
    Config,
    ToolType,
    parse_cc_users,
    parse_threshold,
    parse_tool,
)
from benchmark_history.errors import ConfigError


@pytest.mark.parametrize("value, expected", [
    ("200%", 2.0),
    ("150%", 1.5),
    ("0%", 0.0),
    ("1.5", 1.5),
    ("0", 0.0),
    (" 300% ", 3.0),
])
def test_parse_threshold(value, expected):
    assert parse_threshold(value) == expected


@pytest.mark.parametrize("value", ["", "%", "abc", "-10%", "nan"])
def test_parse_threshold_rejects(value):
    with pytest.raises(ConfigError):
        parse_threshold(value)


def test_parse_tool():
    assert parse_tool("pytest") is ToolType.PYTEST
    with pytest.raises(ConfigError):
        parse_tool("jmh")


def test_parse_cc_users():
    assert parse_cc_users("@a, @b,,") == ("@a", "@b")
    assert parse_cc_users("") == ()
    with pytest.raises(ConfigError):
        parse_cc_users("@a,b")


def test_config_is_immutable():
    config = Config(name="Benchmark", tool=ToolType.GO, output_file_path="out.json")
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.name = "Other"


def test_data_path():
    config = Config(name="Benchmark", tool=ToolType.GO, output_file_path="out.json",
                    benchmark_data_dir_path="bench")
    assert config.data_path.replace("\\", "/") == "bench/data.js"


@pytest.mark.parametrize("overrides", [
    {"name": ""},
    {"gh_pages_branch": ""},
    {"benchmark_data_dir_path": ""},
    {"output_file_path": ""},
    {"tool": "cargo"},
    {"alert_threshold": -1.0},
    {"auto_push": True},
    {"comment_on_alert": True},
])
def test_invalid_config(overrides):
    values = dict(name="Benchmark", tool=ToolType.CARGO, output_file_path="out.json")
    values.update(overrides)
    with pytest.raises(ConfigError):
        Config(**values)


def test_from_args_defaults():
    args = build_parser().parse_args(["publish", "--tool", "cargo", "--output-file-path", "out.json"])

    config = Config.from_args(args, environ={})

    assert config == Config(
        name="Benchmark",
        tool=ToolType.CARGO,
        output_file_path="out.json",
        gh_pages_branch="gh-pages",
        benchmark_data_dir_path="dev/bench",
        github_token=None,
        auto_push=False,
        skip_fetch_gh_pages=False,
        comment_on_alert=False,
        alert_threshold=2.0,
        fail_on_alert=False,
        alert_comment_cc_users=(),
    )


def test_from_args_all_options():
    args = build_parser().parse_args([
        "publish",
        "--name", "Rust Benchmark",
        "--tool", "cargo",
        "--output-file-path", "out.json",
        "--gh-pages-branch", "benchmarks",
        "--benchmark-data-dir-path", "perf",
        "--auto-push",
        "--skip-fetch-gh-pages",
        "--comment-on-alert",
        "--alert-threshold", "150%",
        "--fail-on-alert",
        "--alert-comment-cc-users", "@a,@b",
    ])

    config = Config.from_args(args, environ={"GITHUB_TOKEN": "env-token"})

    assert config.github_token == "env-token"
    assert config.auto_push
    assert config.skip_fetch_gh_pages
    assert config.comment_on_alert
    assert config.fail_on_alert
    assert config.alert_threshold == 1.5
    assert config.alert_comment_cc_users == ("@a", "@b")
    assert config.gh_pages_branch == "benchmarks"


def test_token_argument_wins_over_environment():
    args = build_parser().parse_args([
        "publish", "--tool", "go", "--output-file-path", "out.json", "--github-token", "arg-token",
    ])
    assert Config.from_args(args, environ={"GITHUB_TOKEN": "env-token"}).github_token == "arg-token"


def test_auto_push_without_token_is_rejected():
    args = build_parser().parse_args(["publish", "--tool", "go", "--output-file-path", "out.json", "--auto-push"])
    with pytest.raises(ConfigError):
        Config.from_args(args, environ={})
