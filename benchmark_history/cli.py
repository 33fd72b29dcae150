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
Benchmark history command line

Usage:
  benchmark-history publish --tool=<tool> --output-file-path=<result.json> [options]
  benchmark-history report --data-dir=<dir> --output-dir=<dir> [--name=<suite>]
  benchmark-history check --data-dir=<dir> --name=<suite> [--alert-threshold=<threshold>]

`publish` appends one benchmark result to data.js in the publish branch,
pushes it, and alerts on regressions. `report` renders trend charts from
data.js. `check` compares the newest entry of a suite against its baseline
and exits with 1 when a benchmark regressed.
"""

import argparse
import json
import os
import sys
import time
from typing import List, Optional

from benchmark_history import actions_log
from benchmark_history.config import (
    DEFAULT_ALERT_THRESHOLD,
    DEFAULT_BENCHMARK_NAME,
    DEFAULT_DATA_DIR_PATH,
    DEFAULT_GH_PAGES_BRANCH,
    Config,
    ToolType,
    is_known_tool,
    parse_threshold,
)
from benchmark_history.errors import BenchmarkHistoryError, ConfigError, EntryFormatError
from benchmark_history.github_context import RepositoryContext
from benchmark_history.history import DATA_FILE_NAME, Entry, load_history
from benchmark_history.publisher import BenchmarkPublisher
from benchmark_history.regression_detector import detect_latest_regressions
from benchmark_history.report_generator import BenchmarkReportGenerator


def read_benchmark_result(path: str, tool: ToolType) -> Entry:
    """Read the entry produced by the benchmark run.

    `tool` and `date` are filled in when the result file leaves them out.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise EntryFormatError(f"Could not read benchmark result {path}: {e}")

    if isinstance(data, dict):
        data.setdefault("tool", tool.value)
        data.setdefault("date", int(time.time() * 1000))
    entry = Entry.from_dict(data)
    if entry.tool != tool.value:
        raise EntryFormatError(f"Benchmark result is for tool '{entry.tool}' but 'tool' input is '{tool.value}'")
    return entry


def publish(args: argparse.Namespace) -> int:
    config = Config.from_args(args)
    bench = read_benchmark_result(config.output_file_path, config.tool)
    context = RepositoryContext.from_environ()

    BenchmarkPublisher(config, context).publish(bench)
    actions_log.info(f"Benchmark result for {bench.commit_id} was added to '{config.name}'")
    return 0


def report(args: argparse.Namespace) -> int:
    generator = BenchmarkReportGenerator(os.path.join(args.data_dir, DATA_FILE_NAME), args.output_dir)
    generator.generate_report(args.name, parse_threshold(args.alert_threshold))
    return 0


def check(args: argparse.Namespace) -> int:
    history = load_history(os.path.join(args.data_dir, DATA_FILE_NAME))
    suite = history.entries.get(args.name)
    if suite and not is_known_tool(suite[-1].tool):
        raise ConfigError(f"Cannot compare results of unknown tool '{suite[-1].tool}'")

    latest, prev, alerts = detect_latest_regressions(history, args.name, parse_threshold(args.alert_threshold))
    if latest is None:
        print(f"No benchmark results found for '{args.name}'")
        return 0
    if prev is None:
        print("Not enough results to detect regressions")
        return 0

    if alerts:
        print(f"⚠️ Performance regressions detected between {prev.commit_id} and {latest.commit_id}:")
        for alert in alerts:
            print(f"  - {alert.current.name}: {alert.prev.value} {alert.prev.unit} → "
                  f"{alert.current.value} {alert.current.unit} (ratio {alert.ratio:.2f})")
        return 1

    print("✅ No performance regressions detected")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="benchmark-history", description="Keep benchmark results history and alert on regressions"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("publish", help="Add a benchmark result to the publish branch")
    p.set_defaults(func=publish)
    p.add_argument("--name", default=DEFAULT_BENCHMARK_NAME, help="Name of the benchmark suite")
    p.add_argument("--tool", required=True, choices=[t.value for t in ToolType], help="Tool that produced the result")
    p.add_argument("--output-file-path", required=True, help="JSON file with the benchmark result")
    p.add_argument("--gh-pages-branch", default=DEFAULT_GH_PAGES_BRANCH, help="Branch holding the history")
    p.add_argument(
        "--benchmark-data-dir-path",
        default=DEFAULT_DATA_DIR_PATH,
        help="Directory of data.js in the publish branch",
    )
    p.add_argument("--github-token", help="Token for pushing and commenting (default: $GITHUB_TOKEN)")
    p.add_argument("--auto-push", action=argparse.BooleanOptionalAction, default=False,
                   help="Push the generated commit")
    p.add_argument("--skip-fetch-gh-pages", action=argparse.BooleanOptionalAction, default=False,
                   help="Do not pull the publish branch before committing")
    p.add_argument("--comment-on-alert", action=argparse.BooleanOptionalAction, default=False,
                   help="Leave a commit comment when a regression is found")
    p.add_argument("--alert-threshold", default=DEFAULT_ALERT_THRESHOLD,
                   help="Ratio to alert at, e.g. '200%%' or '2.0'")
    p.add_argument("--fail-on-alert", action=argparse.BooleanOptionalAction, default=False,
                   help="Fail when a regression is found")
    p.add_argument("--alert-comment-cc-users", default="",
                   help="Comma separated @mentions added to alert comments")

    p = subparsers.add_parser("report", help="Render trend charts from data.js")
    p.set_defaults(func=report)
    p.add_argument("--data-dir", default=DEFAULT_DATA_DIR_PATH, help="Directory containing data.js")
    p.add_argument("--output-dir", default="benchmark_reports", help="Directory to store reports")
    p.add_argument("--name", help="Only report this benchmark suite")
    p.add_argument("--alert-threshold", default=DEFAULT_ALERT_THRESHOLD,
                   help="Highlight benchmarks above this ratio")

    p = subparsers.add_parser("check", help="Compare the newest result of a suite against its baseline")
    p.set_defaults(func=check)
    p.add_argument("--data-dir", default=DEFAULT_DATA_DIR_PATH, help="Directory containing data.js")
    p.add_argument("--name", default=DEFAULT_BENCHMARK_NAME, help="Name of the benchmark suite")
    p.add_argument("--alert-threshold", default=DEFAULT_ALERT_THRESHOLD, help="Ratio to alert at")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except BenchmarkHistoryError as e:
        actions_log.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
