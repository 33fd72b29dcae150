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

"""Viewer page written next to data.js the first time a suite is published."""

import os

from benchmark_history import actions_log
from benchmark_history.git import GitClient

INDEX_HTML_NAME = "index.html"

DEFAULT_INDEX_HTML = """\
<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Benchmarks</title>
    <style>
      body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; margin: 0; color: #333; }
      header { padding: 16px 32px; background-color: #f2f2f2; }
      header #last-update { font-size: 0.8em; color: #666; }
      main { padding: 0 32px; }
      .benchmark-set { margin: 8px 0; width: 100%; }
      .benchmark-title { font-size: 1.5em; font-weight: bold; margin: 24px 0 8px; }
      .benchmark-graphs { display: flex; flex-wrap: wrap; }
      .benchmark-chart { max-width: 1000px; width: 100%; }
      #dl-button { margin-top: 8px; }
    </style>
  </head>
  <body>
    <header>
      <strong>Benchmarks</strong>
      <div>Repository: <a id="repository-link" rel="noopener"></a></div>
      <div id="last-update">Last Update: <span id="last-update-time"></span></div>
      <button id="dl-button">Download data as JSON</button>
    </header>
    <main id="main"></main>

    <script src="https://cdn.jsdelivr.net/npm/chart.js@2.9.2/dist/Chart.min.js"></script>
    <script src="data.js"></script>
    <script id="main-script">
      'use strict';
      (function() {
        const toolColors = {
          cargo: '#dea584',
          go: '#00add8',
          benchmarkjs: '#f1e05a',
          pytest: '#3572a5',
          _: '#333333'
        };

        function init() {
          function collectBenchesPerTestCase(entries) {
            const map = new Map();
            for (const entry of entries) {
              const {commit, date, tool, benches} = entry;
              for (const bench of benches) {
                const result = { commit, date, tool, bench };
                const arr = map.get(bench.name);
                if (arr === undefined) {
                  map.set(bench.name, [result]);
                } else {
                  arr.push(result);
                }
              }
            }
            return map;
          }

          const data = window.BENCHMARK_DATA;

          document.getElementById('last-update-time').textContent = new Date(data.lastUpdate).toString();
          const repoLink = document.getElementById('repository-link');
          repoLink.href = data.repoUrl;
          repoLink.textContent = data.repoUrl;

          document.getElementById('dl-button').onclick = () => {
            const dataUrl = 'data:,' + JSON.stringify(data, null, 2);
            const a = document.createElement('a');
            a.href = dataUrl;
            a.download = 'benchmark_data.json';
            a.click();
          };

          return Object.keys(data.entries).map(name => ({
            name,
            dataSet: collectBenchesPerTestCase(data.entries[name]),
          }));
        }

        function renderAllChars(dataSets) {

          function renderGraph(parent, name, dataset) {
            const canvas = document.createElement('canvas');
            canvas.className = 'benchmark-chart';
            parent.appendChild(canvas);

            const color = toolColors[dataset.length > 0 ? dataset[0].tool : '_'];
            const data = {
              labels: dataset.map(d => d.commit.id.slice(0, 7)),
              datasets: [
                {
                  label: name,
                  data: dataset.map(d => d.bench.value),
                  borderColor: color,
                  backgroundColor: color + '60',
                }
              ],
            };
            const options = {
              scales: {
                xAxes: [{ scaleLabel: { display: true, labelString: 'commit' } }],
                yAxes: [{
                  scaleLabel: { display: true, labelString: dataset.length > 0 ? dataset[0].bench.unit : '' },
                  ticks: { beginAtZero: true }
                }],
              },
              tooltips: {
                callbacks: {
                  afterTitle: items => {
                    const {index} = items[0];
                    const commit = dataset[index].commit;
                    return '\\n' + (commit.message || '') + '\\n\\n' + (commit.timestamp || '') +
                      (commit.committer ? ' committed by @' + commit.committer.username : '') + '\\n';
                  },
                  label: item => {
                    let label = item.value;
                    const { range, unit } = dataset[item.index].bench;
                    label += ' ' + unit;
                    if (range) {
                      label += ' (' + range + ')';
                    }
                    return label;
                  },
                  afterLabel: item => {
                    const { extra } = dataset[item.index].bench;
                    return extra ? '\\n' + extra : '';
                  }
                }
              },
              onClick: (_mouseEvent, activeElems) => {
                if (activeElems.length === 0) {
                  return;
                }
                const index = activeElems[0]._index;
                const url = dataset[index].commit.url;
                if (url) {
                  window.open(url, '_blank');
                }
              },
            };

            new Chart(canvas, { type: 'line', data, options });
          }

          function renderBenchSet(name, benchSet, main) {
            const setElem = document.createElement('div');
            setElem.className = 'benchmark-set';
            main.appendChild(setElem);

            const nameElem = document.createElement('h1');
            nameElem.className = 'benchmark-title';
            nameElem.textContent = name;
            setElem.appendChild(nameElem);

            const graphsElem = document.createElement('div');
            graphsElem.className = 'benchmark-graphs';
            setElem.appendChild(graphsElem);

            for (const [benchName, benches] of benchSet.entries()) {
              renderGraph(graphsElem, benchName, benches);
            }
          }

          const main = document.getElementById('main');
          for (const {name, dataSet} of dataSets) {
            renderBenchSet(name, dataSet, main);
          }
        }

        renderAllChars(init());
      })();
    </script>
  </body>
</html>
"""


def add_index_html_if_needed(directory: str, git: GitClient) -> bool:
    """Write and stage the default viewer page unless one already exists.

    Returns True when the page was created.
    """
    index_html = os.path.join(directory, INDEX_HTML_NAME)
    if os.path.exists(index_html):
        actions_log.debug(f"Skipped to create default index.html since it is already existing: {index_html}")
        return False

    with open(index_html, "w", encoding="utf-8") as f:
        f.write(DEFAULT_INDEX_HTML)
    git.add(index_html)
    actions_log.info(f"Created default index.html at {index_html}")
    return True
