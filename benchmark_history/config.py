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

"""Publish configuration."""

import argparse
import math
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Tuple

from benchmark_history.errors import ConfigError
from benchmark_history.history import DATA_FILE_NAME

DEFAULT_BENCHMARK_NAME = "Benchmark"
DEFAULT_GH_PAGES_BRANCH = "gh-pages"
DEFAULT_DATA_DIR_PATH = "dev/bench"
DEFAULT_ALERT_THRESHOLD = "200%"


class ToolType(str, Enum):
    """Benchmark tools whose output can be published."""

    CARGO = "cargo"
    GO = "go"
    BENCHMARKJS = "benchmarkjs"
    PYTEST = "pytest"

    def __str__(self) -> str:
        return self.value


def is_known_tool(value: str) -> bool:
    return value in {t.value for t in ToolType}


def parse_tool(value: str) -> ToolType:
    try:
        return ToolType(value)
    except ValueError:
        choices = ", ".join(t.value for t in ToolType)
        raise ConfigError(f"Invalid value '{value}' for 'tool' input. It must be one of {choices}")


def parse_threshold(value: str) -> float:
    """Parse an alert threshold given as a percentage ("200%") or a ratio ("2.0")."""
    text = value.strip()
    if not text:
        raise ConfigError("'alert-threshold' input must not be empty")
    is_percentage = text.endswith("%")
    if is_percentage:
        text = text[:-1]
    try:
        threshold = float(text)
    except ValueError:
        raise ConfigError(f"Specified value '{value}' in 'alert-threshold' input cannot be parsed as a number")
    if is_percentage:
        threshold /= 100
    if math.isnan(threshold) or threshold < 0:
        raise ConfigError(f"'alert-threshold' must be a non-negative number: {value}")
    return threshold


def parse_cc_users(value: str) -> Tuple[str, ...]:
    users = tuple(u.strip() for u in value.split(",") if u.strip())
    for user in users:
        if not user.startswith("@"):
            raise ConfigError(
                f"User name in 'alert-comment-cc-users' input must start with '@' but got '{user}'"
            )
    return users


@dataclass(frozen=True)
class Config:
    name: str
    tool: ToolType
    output_file_path: str
    gh_pages_branch: str = DEFAULT_GH_PAGES_BRANCH
    benchmark_data_dir_path: str = DEFAULT_DATA_DIR_PATH
    github_token: Optional[str] = None
    auto_push: bool = False
    skip_fetch_gh_pages: bool = False
    comment_on_alert: bool = False
    alert_threshold: float = 2.0
    fail_on_alert: bool = False
    alert_comment_cc_users: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ConfigError("Name must not be empty")
        if not isinstance(self.tool, ToolType):
            raise ConfigError(f"Invalid tool: {self.tool!r}")
        if not self.output_file_path:
            raise ConfigError("'output-file-path' input must not be empty")
        if not self.gh_pages_branch:
            raise ConfigError("Branch value must not be empty for 'gh-pages-branch' input")
        if not self.benchmark_data_dir_path:
            raise ConfigError("'benchmark-data-dir-path' input must not be empty")
        if self.alert_threshold < 0:
            raise ConfigError(f"'alert-threshold' must not be negative: {self.alert_threshold}")
        if self.auto_push and not self.github_token:
            raise ConfigError("'auto-push' is enabled but 'github-token' is not set")
        if self.comment_on_alert and not self.github_token:
            raise ConfigError("'comment-on-alert' is enabled but 'github-token' is not set")

    @property
    def data_path(self) -> str:
        return os.path.join(self.benchmark_data_dir_path, DATA_FILE_NAME)

    @classmethod
    def from_args(cls, args: argparse.Namespace, environ: Mapping[str, str] = os.environ) -> "Config":
        """Build a config from parsed `publish` arguments and the environment."""
        return cls(
            name=args.name,
            tool=parse_tool(args.tool),
            output_file_path=args.output_file_path,
            gh_pages_branch=args.gh_pages_branch,
            benchmark_data_dir_path=args.benchmark_data_dir_path,
            github_token=args.github_token or environ.get("GITHUB_TOKEN") or None,
            auto_push=args.auto_push,
            skip_fetch_gh_pages=args.skip_fetch_gh_pages,
            comment_on_alert=args.comment_on_alert,
            alert_threshold=parse_threshold(args.alert_threshold),
            fail_on_alert=args.fail_on_alert,
            alert_comment_cc_users=parse_cc_users(args.alert_comment_cc_users or ""),
        )
