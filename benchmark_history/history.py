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
Benchmark history storage

The history is a single `data.js` file in the publish branch. It is a JSON
document behind a fixed script prefix so that the viewer page can load it
with a plain <script> tag:

  window.BENCHMARK_DATA = {"lastUpdate": ..., "repoUrl": ..., "entries": {...}}

`entries` maps a suite name to the list of runs for that suite in the order
they arrived. Runs are only ever appended.
"""

import json
import math
import os
import tempfile
import time
from typing import Any, Dict, List, Optional, Tuple

from benchmark_history import actions_log
from benchmark_history.errors import EntryFormatError

SCRIPT_PREFIX = "window.BENCHMARK_DATA = "
DATA_FILE_NAME = "data.js"


class Measurement:
    """A single named benchmark value inside an entry."""

    _KNOWN_KEYS = ("name", "value", "unit", "range", "extra")

    def __init__(
        self,
        name: str,
        value: float,
        unit: str,
        range: Optional[str] = None,
        extra: Optional[str] = None,
        other: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.value = value
        self.unit = unit
        self.range = range
        self.extra = extra
        # Keys written by other producers, kept so a rewrite never drops them.
        self.other = dict(other or {})

    @classmethod
    def from_dict(cls, data: Any) -> "Measurement":
        if not isinstance(data, dict):
            raise EntryFormatError(f"Benchmark must be an object but got {data!r}")
        name = data.get("name")
        value = data.get("value")
        unit = data.get("unit")
        if not isinstance(name, str):
            raise EntryFormatError(f"Benchmark name must be a string: {data!r}")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EntryFormatError(f"Value of benchmark '{name}' must be a number: {value!r}")
        if isinstance(value, float) and not math.isfinite(value):
            raise EntryFormatError(f"Value of benchmark '{name}' must be a finite number: {value!r}")
        if not isinstance(unit, str):
            raise EntryFormatError(f"Unit of benchmark '{name}' must be a string: {unit!r}")
        other = {k: v for k, v in data.items() if k not in cls._KNOWN_KEYS}
        return cls(name, value, unit, data.get("range"), data.get("extra"), other)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "value": self.value, "unit": self.unit}
        if self.range is not None:
            data["range"] = self.range
        if self.extra is not None:
            data["extra"] = self.extra
        data.update(self.other)
        return data


class Entry:
    """One benchmark run of one suite, tied to a commit."""

    _KNOWN_KEYS = ("commit", "date", "tool", "benches")

    def __init__(
        self,
        commit: Dict[str, Any],
        tool: str,
        benches: List[Measurement],
        date: Optional[int] = None,
        other: Optional[Dict[str, Any]] = None,
    ):
        self.commit = commit
        self.tool = tool
        self.benches = benches
        self.date = date
        self.other = dict(other or {})

    @property
    def commit_id(self) -> str:
        return self.commit["id"]

    def find_bench(self, name: str) -> Optional[Measurement]:
        """Return the first measurement called `name`, if any."""
        for bench in self.benches:
            if bench.name == name:
                return bench
        return None

    @classmethod
    def from_dict(cls, data: Any) -> "Entry":
        if not isinstance(data, dict):
            raise EntryFormatError(f"Entry must be an object but got {type(data).__name__}")
        commit = data.get("commit")
        if not isinstance(commit, dict) or not isinstance(commit.get("id"), str):
            raise EntryFormatError("Entry must have a 'commit' object with a string 'id'")
        tool = data.get("tool")
        if not isinstance(tool, str):
            raise EntryFormatError(f"Entry for commit {commit['id']} has no 'tool'")
        benches = data.get("benches")
        if not isinstance(benches, list):
            raise EntryFormatError(f"Entry for commit {commit['id']} has no 'benches' list")
        other = {k: v for k, v in data.items() if k not in cls._KNOWN_KEYS}
        return cls(
            commit=dict(commit),
            tool=tool,
            benches=[Measurement.from_dict(b) for b in benches],
            date=data.get("date"),
            other=other,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"commit": self.commit}
        if self.date is not None:
            data["date"] = self.date
        data["tool"] = self.tool
        data["benches"] = [b.to_dict() for b in self.benches]
        data.update(self.other)
        return data


class History:
    """The whole content of data.js."""

    def __init__(
        self,
        last_update: int = 0,
        repo_url: str = "",
        entries: Optional[Dict[str, List[Entry]]] = None,
    ):
        self.last_update = last_update
        self.repo_url = repo_url
        self.entries: Dict[str, List[Entry]] = entries if entries is not None else {}

    @classmethod
    def from_dict(cls, data: Any) -> "History":
        if not isinstance(data, dict):
            raise EntryFormatError("Benchmark data must be a JSON object")
        last_update = data.get("lastUpdate")
        repo_url = data.get("repoUrl")
        entries = data.get("entries")
        if isinstance(last_update, bool) or not isinstance(last_update, (int, float)):
            raise EntryFormatError(f"'lastUpdate' must be a number: {last_update!r}")
        if not isinstance(repo_url, str):
            raise EntryFormatError(f"'repoUrl' must be a string: {repo_url!r}")
        if not isinstance(entries, dict):
            raise EntryFormatError("'entries' must be an object")

        parsed: Dict[str, List[Entry]] = {}
        for name, suite in entries.items():
            if not isinstance(suite, list):
                raise EntryFormatError(f"Entries of benchmark '{name}' must be a list")
            parsed[name] = [Entry.from_dict(e) for e in suite]
        return cls(last_update, repo_url, parsed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lastUpdate": self.last_update,
            "repoUrl": self.repo_url,
            "entries": {
                name: [e.to_dict() for e in suite] for name, suite in self.entries.items()
            },
        }


def load_history(data_path: str) -> History:
    """Load data.js, falling back to an empty history if it is missing or broken."""
    try:
        with open(data_path, "r", encoding="utf-8") as f:
            script = f.read()
        if not script.startswith(SCRIPT_PREFIX):
            raise EntryFormatError(f"Missing '{SCRIPT_PREFIX.strip()}' prefix")
        history = History.from_dict(json.loads(script[len(SCRIPT_PREFIX):]))
    except (OSError, ValueError, EntryFormatError) as e:
        actions_log.warning(f"Could not load {data_path}. Using empty default: {e}")
        return History()

    actions_log.debug(f"Loaded data.js at {data_path}")
    return history


def find_baseline(suite: List[Entry], commit_id: str) -> Optional[Entry]:
    """Return the latest entry in `suite` whose commit differs from `commit_id`."""
    for entry in reversed(suite):
        if entry.commit_id != commit_id:
            return entry
    return None


def merge_entry(
    history: History,
    name: str,
    entry: Entry,
    repo_url: str,
    now: Optional[int] = None,
) -> Tuple[History, Optional[Entry]]:
    """Append `entry` to suite `name` and return the history with its baseline.

    The baseline is looked up before appending, so a rerun of the same commit
    is compared against the last run of a different commit.
    """
    history.last_update = now if now is not None else int(time.time() * 1000)
    history.repo_url = repo_url

    suite = history.entries.get(name)
    if suite is None:
        history.entries[name] = [entry]
        actions_log.debug(f"No entry found for benchmark '{name}'. Created.")
        return history, None

    baseline = find_baseline(suite, entry.commit_id)
    suite.append(entry)
    return history, baseline


def store_history(data_path: str, history: History):
    """Write data.js through a temporary file so readers never see a partial write."""
    try:
        # data.js is read by JSON.parse, which has no NaN or Infinity.
        script = SCRIPT_PREFIX + json.dumps(history.to_dict(), indent=2, ensure_ascii=False, allow_nan=False)
    except ValueError as e:
        raise EntryFormatError(f"Cannot write {data_path}: {e}")
    directory = os.path.dirname(os.path.abspath(data_path))
    fd, tmp_path = tempfile.mkstemp(prefix=".data.js.", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(script)
        # mkstemp creates the file as 0600
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, data_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    actions_log.debug(f"Overwrote {data_path} for adding new data")
