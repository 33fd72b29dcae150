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

"""Exceptions raised while publishing benchmark results."""

from typing import List, Optional


class BenchmarkHistoryError(Exception):
    """Base class for all errors raised by benchmark_history."""


class ConfigError(BenchmarkHistoryError):
    """Invalid or inconsistent configuration."""


class EntryFormatError(BenchmarkHistoryError):
    """A benchmark result could not be read as an entry."""


class GitError(BenchmarkHistoryError):
    """A git command exited with a non-zero status."""

    def __init__(self, args: List[str], returncode: int, stderr: str, stdout: str = ""):
        self.command_args = args
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(
            f"Command 'git' failed with args '{' '.join(args)}' (exit code {returncode}): {stderr}"
        )


class RepositoryContextError(BenchmarkHistoryError):
    """Repository metadata is required but not available."""


class CommentError(BenchmarkHistoryError):
    """A commit comment could not be created."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class PerformanceAlertError(BenchmarkHistoryError):
    """Raised when fail-on-alert is set and at least one alert was found.

    The message is the full alert report so it shows up in the run log.
    """
