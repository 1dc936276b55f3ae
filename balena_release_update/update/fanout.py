# Copyright 2025 balena-release-update contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Join-all fan-out over a fixed set of independent calls.

Every platform lookup is a blocking HTTP request, so independent lookups
run on a thread pool and are joined before their results are used. There
is no shared mutable state between branches, so nothing here locks.

Failure policy is fail-fast: as soon as one branch raises, branches that
have not started yet are cancelled, branches already running are allowed
to finish (threads cannot be interrupted), and the first failing branch's
exception (in input order) propagates. Results are discarded in that case.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import TypeVar

T = TypeVar("T")

DEFAULT_MAX_WORKERS = 8


def run_all(
    tasks: Sequence[Callable[[], T]],
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[T]:
    """Run callables concurrently and return their results in input order.

    Args:
        tasks: Zero-argument callables.
        max_workers: Upper bound on concurrently running tasks.

    Returns:
        One result per task, in the order the tasks were given.

    Raises:
        Exception: Whatever the first failing task raised.
    """
    if not tasks:
        return []
    if len(tasks) == 1:
        return [tasks[0]()]

    with ThreadPoolExecutor(max_workers=min(len(tasks), max_workers)) as executor:
        futures = [executor.submit(task) for task in tasks]
        _, not_done = wait(futures, return_when=FIRST_EXCEPTION)
        for future in not_done:
            future.cancel()

    for future in futures:
        if not future.cancelled() and future.exception() is not None:
            raise future.exception()
    return [future.result() for future in futures]
