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

"""Waiting for a release update to become ready.

Delta generation happens on the platform, asynchronously, and usually
takes tens of seconds to minutes. The poller re-resolves the update every
POLL_INTERVAL until it is READY or the deadline passes.

Deadline handling:

- Without a deadline, one DEFAULT_WAIT from now is used.
- The deadline is checked before every sleep, after every sleep and after
  every resolve. Sleeps are shortened so they never run past it. A resolve
  that is in flight when the deadline passes is allowed to finish, but its
  result is discarded and the wait times out.

A resolve failing with NotFoundError or TransientPlatformError does not end
the wait: platform state may change and the next cycle tries again. The
failure is logged as a warning. ValidationError always propagates.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
import time

from balena_release_update.exceptions import (
    NotFoundError,
    ReadinessTimeoutError,
    TransientPlatformError,
)
from balena_release_update.logging import Logger, get_global_logger
from balena_release_update.platform import PlatformClient
from balena_release_update.results import ReleaseUpdate

from .diff import utcnow
from .resolver import resolve_release_update

POLL_INTERVAL = timedelta(seconds=20)

DEFAULT_WAIT = timedelta(hours=24)


def _check_deadline(
    deadline: datetime, clock: Callable[[], datetime], attempts: int
) -> float:
    """Return the seconds left until the deadline, raising when none are."""
    remaining = (deadline - clock()).total_seconds()
    if remaining <= 0:
        raise ReadinessTimeoutError(
            f"Timed out waiting for the update to become ready "
            f"(deadline {deadline.isoformat()}, {attempts} poll(s))"
        )
    return remaining


def wait_for_readiness(
    client: PlatformClient,
    source: int | str,
    target: int | str,
    *,
    deadline: datetime | None = None,
    interval: timedelta = POLL_INTERVAL,
    clock: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], None] = time.sleep,
    logger: Logger | None = None,
) -> ReleaseUpdate:
    """Poll until the update from source to target is READY.

    Args:
        client: Platform gateway.
        source: Source release id or commit.
        target: Target release id or commit.
        deadline: Timezone-aware point in time to give up at. Default is
            DEFAULT_WAIT from now.
        interval: Time between polls.
        clock: Returns the current time (timezone-aware).
        sleep: Blocks for the given number of seconds.
        logger: Logger. Default is the global logger.

    Returns:
        The first READY ReleaseUpdate.

    Raises:
        ReadinessTimeoutError: If the deadline passes first.
        ValidationError: If the release pair can never be resolved.
    """
    if logger is None:
        logger = get_global_logger()
    if deadline is None:
        deadline = clock() + DEFAULT_WAIT

    attempts = 0
    while True:
        remaining = _check_deadline(deadline, clock, attempts)
        sleep(min(interval.total_seconds(), remaining))
        _check_deadline(deadline, clock, attempts)

        attempts += 1
        try:
            update = resolve_release_update(
                client, source, target, clock=clock, logger=logger
            )
        except (NotFoundError, TransientPlatformError) as err:
            logger.warning("POLL", f"Poll {attempts} failed, will retry: {err}")
            continue

        _check_deadline(deadline, clock, attempts)
        if update.is_ready:
            logger.verbose("POLL", f"The update is ready after {attempts} poll(s)")
            return update
        logger.verbose(
            "POLL",
            f"The update is {update.overall_status.value}; will repoll in "
            f"{int(interval.total_seconds())} seconds...",
        )
