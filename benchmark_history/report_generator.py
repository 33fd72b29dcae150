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

"""Render trend charts and an HTML summary from data.js."""

import html
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from benchmark_history import actions_log  # noqa: E402
from benchmark_history.config import is_known_tool  # noqa: E402
from benchmark_history.history import History, load_history  # noqa: E402
from benchmark_history.regression_detector import compute_ratio, detect_latest_regressions  # noqa: E402


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "benchmark"


def history_to_frame(history: History, name: str) -> pd.DataFrame:
    """Flatten the entries of suite `name` into one row per measurement."""
    rows = []
    for index, entry in enumerate(history.entries.get(name, [])):
        if isinstance(entry.date, (int, float)):
            timestamp = pd.to_datetime(entry.date, unit="ms")
        else:
            timestamp = pd.NaT
        for bench in entry.benches:
            rows.append({
                "run": index,
                "commit": entry.commit_id[:7],
                "timestamp": timestamp,
                "tool": entry.tool,
                "bench": bench.name,
                "value": bench.value,
                "unit": bench.unit,
            })
    return pd.DataFrame(rows, columns=["run", "commit", "timestamp", "tool", "bench", "value", "unit"])


class BenchmarkReportGenerator:
    def __init__(self, data_path, output_dir):
        self.data_path = Path(data_path)
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def generate_report(self, suite: Optional[str] = None, threshold: float = 2.0) -> List[Path]:
        """Generate charts and report.html. Returns the written files."""
        history = load_history(str(self.data_path))
        names = [suite] if suite is not None else list(history.entries)
        names = [n for n in names if history.entries.get(n)]

        if not names:
            actions_log.info("No benchmark results found")
            return []

        written = []
        sections = []
        for name in names:
            df = history_to_frame(history, name)
            chart = self._generate_time_series_plot(name, df)
            written.append(chart)
            sections.append(self._render_suite_section(history, name, chart, threshold))

        report = self._generate_html_report(history, sections)
        written.append(report)

        actions_log.info(f"Report generated in {self.output_dir}")
        return written

    def _generate_time_series_plot(self, name: str, df: pd.DataFrame) -> Path:
        """Plot one line per benchmark over the runs of a suite."""
        fig, ax = plt.subplots(figsize=(12, 6))

        for bench_name, bench_df in df.groupby("bench", sort=False):
            unit = bench_df["unit"].iloc[0]
            ax.plot(bench_df["run"], bench_df["value"], marker="o", linestyle="-",
                    label=f"{bench_name} ({unit})")

        runs = df.drop_duplicates("run")
        ax.set_xticks(list(runs["run"]))
        ax.set_xticklabels(list(runs["commit"]), rotation=45)
        ax.set_title(f"{name} Over Time")
        ax.set_xlabel("Commit")
        ax.set_ylabel("Value")
        ax.legend()
        ax.grid(True)
        fig.tight_layout()

        path = self.output_dir / f"{_slug(name)}.png"
        fig.savefig(path)
        plt.close(fig)
        return path

    def _render_suite_section(self, history: History, name: str, chart: Path, threshold: float) -> str:
        if is_known_tool(history.entries[name][-1].tool):
            latest, prev, alerts = detect_latest_regressions(history, name, threshold)
        else:
            latest, prev, alerts = history.entries[name][-1], None, []
        alerted = {a.current.name for a in alerts}

        rows = ""
        for bench in latest.benches:
            prev_bench = prev.find_bench(bench.name) if prev is not None else None
            if prev_bench is None:
                prev_text = "-"
                ratio_text = "-"
            else:
                prev_text = f"{prev_bench.value} {html.escape(prev_bench.unit)}"
                ratio_text = f"{compute_ratio(latest.tool, bench.value, prev_bench.value):.3f}"
            css = ' class="alert"' if bench.name in alerted else ""
            rows += f"""
                <tr{css}>
                    <td>{html.escape(bench.name)}</td>
                    <td>{bench.value} {html.escape(bench.unit)}</td>
                    <td>{prev_text}</td>
                    <td>{ratio_text}</td>
                </tr>"""

        prev_id = html.escape(prev.commit_id) if prev is not None else "none"
        return f"""
            <h2>{html.escape(name)}</h2>
            <div class="chart">
                <img src="{chart.name}" alt="{html.escape(name)}" style="max-width: 100%;">
            </div>
            <p>Latest: {html.escape(latest.commit_id)}, previous: {prev_id}</p>
            <table>
                <tr>
                    <th>Benchmark</th>
                    <th>Current</th>
                    <th>Previous</th>
                    <th>Ratio</th>
                </tr>{rows}
            </table>
        """

    def _generate_html_report(self, history: History, sections: List[str]) -> Path:
        """Generate HTML report"""
        repo_url = html.escape(history.repo_url)
        body = "".join(sections)
        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <title>Benchmark Report</title>
            <style>
                body {{ font-family: Arial, sans-serif; margin: 20px; }}
                h1, h2 {{ color: #333; }}
                table {{ border-collapse: collapse; width: 100%; margin-bottom: 20px; }}
                th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; }}
                th {{ background-color: #f2f2f2; }}
                tr:nth-child(even) {{ background-color: #f9f9f9; }}
                tr.alert {{ background-color: #fdd; }}
                .chart {{ margin: 20px 0; max-width: 100%; }}
            </style>
        </head>
        <body>
            <h1>Benchmark Report</h1>
            <p>Generated on {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}</p>
            <p>Repository: <a href="{repo_url}">{repo_url}</a></p>
            {body}
        </body>
        </html>
        """

        path = self.output_dir / "report.html"
        with open(path, "w", encoding="utf-8") as f:
            f.write(html_content)
        return path
