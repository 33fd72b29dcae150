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

"""Workflow log output.

Lines are printed as GitHub Actions workflow commands so that the runner
folds debug output and highlights warnings and errors. Outside of a runner
they are still readable plain text.
"""

import sys


def _escape(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def debug(message: str):
    print(f"::debug::{_escape(message)}")


def info(message: str):
    print(message)


def warning(message: str):
    print(f"::warning::{_escape(message)}")


def error(message: str):
    print(f"::error::{_escape(message)}", file=sys.stderr)
