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

"""Delta generation requests for pending services.

Asks the delta service to start generating a v3 delta for every service
that needs one: status PENDING and a source image to diff against. New
services and services already READY or PREPARING are left alone.

The trigger endpoint is idempotent per image pair. A 504 answer means a
delta for the pair is already being generated; that is an observation,
not a failure. Because a bare 504 could also come from a proxy, the
requester looks for the running delta record behind it and warns when
there is none or the lookup fails (see DeltaRequest.confirmed).

All triggers run concurrently and fail fast: if one trigger fails, the
error propagates and the batch is reported as failed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from functools import partial

from balena_release_update.exceptions import ReleaseUpdateError
from balena_release_update.logging import Logger, get_global_logger
from balena_release_update.platform import DeltaTrigger, PlatformClient
from balena_release_update.results import ReleaseUpdate, ServiceUpdate
from balena_release_update.status import UpdateStatus

from .diff import DELTA_VERSION, STALE_DELTA_WINDOW, utcnow
from .fanout import run_all


@dataclass(frozen=True)
class DeltaRequest:
    """One delta generation request.

    Attributes:
        service_name: Service the delta is for.
        source_image_id: Image the delta starts from.
        target_image_id: Image the delta produces.
        outcome: What the delta service answered.
        confirmed: False when the service answered IN_PROGRESS but no
            recently updated delta record backs that up, or the lookup
            for it failed.
    """

    service_name: str
    source_image_id: int
    target_image_id: int
    outcome: DeltaTrigger
    confirmed: bool = True


def needs_delta(service_update: ServiceUpdate) -> bool:
    """Whether a delta has to be requested for this service."""
    return (
        service_update.status is UpdateStatus.PENDING
        and not service_update.is_new_service
    )


def _request_delta(
    client: PlatformClient,
    service_update: ServiceUpdate,
    clock: Callable[[], datetime],
    logger: Logger,
) -> DeltaRequest:
    src = service_update.source_image.id
    dest = service_update.target_image.id
    logger.verbose("DELTA", f"Triggering delta between images {src} and {dest}")

    outcome = client.request_delta(DELTA_VERSION, src, dest)
    confirmed = True
    if outcome is DeltaTrigger.IN_PROGRESS:
        try:
            delta = client.find_delta(
                DELTA_VERSION, src, dest, clock() - STALE_DELTA_WINDOW
            )
        except ReleaseUpdateError as err:
            confirmed = False
            logger.warning(
                "DELTA",
                f"Delta service reports images {src} -> {dest} in progress, "
                f"but the delta lookup failed: {err}",
            )
        else:
            confirmed = delta is not None
            if confirmed:
                logger.verbose(
                    "DELTA", f"Delta {delta.id} is already being generated"
                )
            else:
                logger.warning(
                    "DELTA",
                    f"Delta service reports images {src} -> {dest} in progress, "
                    "but no recently updated delta record exists",
                )
    return DeltaRequest(
        service_name=service_update.service_name,
        source_image_id=src,
        target_image_id=dest,
        outcome=outcome,
        confirmed=confirmed,
    )


def request_pending_deltas(
    client: PlatformClient,
    update: ReleaseUpdate,
    *,
    clock: Callable[[], datetime] = utcnow,
    logger: Logger | None = None,
) -> list[DeltaRequest]:
    """Trigger delta generation for every service that needs a delta.

    Args:
        client: Platform gateway.
        update: A previously resolved ReleaseUpdate.
        clock: Returns the current time (timezone-aware).
        logger: Logger. Default is the global logger.

    Returns:
        One DeltaRequest per triggered service, in service order. Empty if
        no service needed a delta.

    Raises:
        TransientPlatformError: If any trigger fails.
    """
    if logger is None:
        logger = get_global_logger()

    pending = [su for su in update.service_updates if needs_delta(su)]
    if not pending:
        logger.verbose("DELTA", "No deltas to request")
        return []
    return run_all(
        [partial(_request_delta, client, su, clock, logger) for su in pending]
    )
