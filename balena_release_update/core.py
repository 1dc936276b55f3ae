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

"""Core orchestration for balena-release-update.

This module provides the two high-level operations behind the CLI:

- **get_update_info**: Describe the update path from release A to release
  B. Read-only; returns a snapshot of current platform state.

- **prepare_update**: Resolve the update, request any missing deltas and,
  optionally, wait until the update is ready.

Both assume v3 deltas, so they are only meaningful for devices running
balenaOS >= 2.47.1.

Design Principles:

- The platform client is always passed in; building one from settings is
  the caller's job (the CLI does it with ApiClient.from_settings)
- Functions return frozen dataclasses; the CLI serializes them
- Error handling uses exceptions; the CLI layer formats them for display

Example:
    Programmatic usage:
        ```python
        from balena_release_update.config import load_settings
        from balena_release_update.core import prepare_update
        from balena_release_update.platform import ApiClient

        client = ApiClient.from_settings(load_settings())
        update = prepare_update(client, 900813, 900835, timeout=600)

        print(update.overall_status.value)            # "ready"
        print(update.estimated_total_payload_size)    # 484575
        ```

"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
import time

from balena_release_update.logging import Logger, get_global_logger
from balena_release_update.platform import PlatformClient
from balena_release_update.results import ReleaseUpdate
from balena_release_update.update import (
    request_pending_deltas,
    resolve_release_update,
    wait_for_readiness,
)
from balena_release_update.update.diff import utcnow


def get_update_info(
    client: PlatformClient,
    from_release: int | str,
    to_release: int | str,
    *,
    logger: Logger | None = None,
) -> ReleaseUpdate:
    """Describe the update path from one release to another.

    Args:
        client: Platform gateway.
        from_release: Source release id or commit hash.
        to_release: Target release id or commit hash.
        logger: Logger. Default is the global logger.

    Returns:
        ReleaseUpdate with the per-service update records, the overall
            status and, when ready, the estimated download size.

    Raises:
        ValidationError: If an identifier is malformed or the releases
            belong to different applications.
        NotFoundError: If a release or image is not available with build
            status "success".
        TransientPlatformError: On any other platform failure.

    Example:
        ```python
        update = get_update_info(client, 900813, "b2cf2db7fece")
        for su in update.service_updates:
            print(su.service_name, su.status.value)
        ```
    """
    return resolve_release_update(client, from_release, to_release, logger=logger)


def prepare_update(
    client: PlatformClient,
    from_release: int | str,
    to_release: int | str,
    *,
    wait: bool | None = None,
    timeout: float | None = None,
    clock: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], None] = time.sleep,
    logger: Logger | None = None,
) -> ReleaseUpdate:
    """Resolve an update, request missing deltas and optionally wait.

    Workflow:

    1. Resolve the update. If it is already ready, return it.
    2. Request deltas for every service that needs one.
    3. If not waiting, return the update resolved in step 1 (statuses do
       not yet reflect the requests just made).
    4. Otherwise poll until the update is ready or the timeout elapses.

    Args:
        client: Platform gateway.
        from_release: Source release id or commit hash.
        to_release: Target release id or commit hash.
        wait: Whether to wait for the update to become ready. Default is
            to wait only when a timeout is given.
        timeout: Maximum time in seconds to wait, counted from the call.
            Implies waiting unless wait is False. Timeouts under 20-30
            seconds are pointless: the poll interval is 20 seconds and a
            resolve takes a few seconds itself. Default is 24 hours.
        clock: Returns the current time (timezone-aware).
        sleep: Blocks for the given number of seconds.
        logger: Logger. Default is the global logger.

    Returns:
        The resolved ReleaseUpdate; READY if waiting succeeded.

    Raises:
        ReadinessTimeoutError: If waiting and the timeout elapses first.
        ValidationError: As for get_update_info.
        NotFoundError: As for get_update_info.
        TransientPlatformError: As for get_update_info, or if a delta
            request fails.
    """
    if logger is None:
        logger = get_global_logger()

    deadline = None if timeout is None else clock() + timedelta(seconds=timeout)
    should_wait = wait is True or (wait is not False and deadline is not None)
    total = 3 if should_wait else 2

    logger.step(1, total, "Resolving update...")
    update = resolve_release_update(
        client, from_release, to_release, clock=clock, logger=logger
    )
    if update.is_ready:
        return update

    logger.step(2, total, "Preparing update...")
    requests_made = request_pending_deltas(client, update, clock=clock, logger=logger)
    logger.verbose("DELTA", f"Requested {len(requests_made)} delta(s)")

    if not should_wait:
        return update

    logger.step(3, total, "Waiting for update to become ready...")
    return wait_for_readiness(
        client,
        update.source_release.id,
        update.target_release.id,
        deadline=deadline,
        clock=clock,
        sleep=sleep,
        logger=logger,
    )
