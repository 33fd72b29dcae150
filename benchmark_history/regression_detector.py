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

"""Detect performance regressions between two benchmark entries."""

import math
from typing import Dict, List, Optional, Tuple

from benchmark_history import actions_log
from benchmark_history.config import ToolType
from benchmark_history.history import Entry, History, Measurement, find_baseline

# True when a larger value means a faster result (ops/sec), False for
# durations where smaller is better.
_BIGGER_IS_BETTER: Dict[ToolType, bool] = {
    ToolType.CARGO: False,
    ToolType.GO: False,
    ToolType.BENCHMARKJS: True,
    ToolType.PYTEST: True,
}

_missing = set(ToolType) - set(_BIGGER_IS_BETTER)
if _missing:
    raise RuntimeError(f"No polarity defined for tools: {sorted(t.value for t in _missing)}")
del _missing


def bigger_is_better(tool: ToolType) -> bool:
    return _BIGGER_IS_BETTER[ToolType(tool)]


class Alert:
    """A benchmark whose ratio against the baseline exceeded the threshold."""

    def __init__(self, current: Measurement, prev: Measurement, ratio: float):
        self.current = current
        self.prev = prev
        self.ratio = ratio

    def __repr__(self) -> str:
        return f"Alert(name={self.current.name!r}, ratio={self.ratio!r})"


def _divide(numerator: float, denominator: float) -> float:
    # Float division in Python raises on zero, the ratio wants IEEE results.
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
    return numerator / denominator


def compute_ratio(tool: ToolType, current: float, prev: float) -> float:
    """Return a ratio that is above 1 when `current` is worse than `prev`."""
    if bigger_is_better(tool):
        return _divide(prev, current)  # e.g. current=100, prev=200
    return _divide(current, prev)  # e.g. current=200, prev=100


def find_alerts(current: Entry, prev: Entry, threshold: float) -> List[Alert]:
    """Compare every benchmark of `current` with the same-named one in `prev`."""
    actions_log.debug(f"Comparing current:{current.commit_id} and prev:{prev.commit_id} for alert")

    tool = ToolType(current.tool)
    alerts = []
    for bench in current.benches:
        prev_bench = prev.find_bench(bench.name)
        if prev_bench is None:
            actions_log.debug(f"Skipped because benchmark '{bench.name}' is not found in previous benchmarks")
            continue

        ratio = compute_ratio(tool, bench.value, prev_bench.value)
        if ratio > threshold:
            actions_log.warning(
                f"Performance alert! Previous value was {prev_bench.value} and current value is "
                f"{bench.value}. Ratio {ratio} is bigger than threshold {threshold}"
            )
            alerts.append(Alert(bench, prev_bench, ratio))

    return alerts


def detect_latest_regressions(
    history: History, name: str, threshold: float
) -> Tuple[Optional[Entry], Optional[Entry], List[Alert]]:
    """Check the newest entry of suite `name` against its baseline.

    Returns (latest, baseline, alerts). Both entries are None when the suite
    has no entries, and baseline is None when no earlier commit exists.
    """
    suite = history.entries.get(name)
    if not suite:
        return None, None, []

    latest = suite[-1]
    baseline = find_baseline(suite[:-1], latest.commit_id)
    if baseline is None:
        return latest, None, []
    return latest, baseline, find_alerts(latest, baseline, threshold)
