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

"""Per-service diff between two releases.

For one service of the target release, work out which image the device
runs now, which image it should run, and whether a usable delta between
the two exists, is being computed, or still has to be requested.

Status rules:

- The service is new in the target release: READY. Deltas are never
  produced from scratch, so a fresh install just pulls the image.
- A successful delta exists: READY, with the delta attached.
- A running delta updated within the staleness window exists: PREPARING.
  The delta is not attached since it cannot be used yet.
- Otherwise: PENDING.

Running deltas that have not been updated for STALE_DELTA_WINDOW are
treated as abandoned. The platform refreshes running rows far more often
than that; the window is kept wide to tolerate clock skew between this
host and the server.

This step only reads; it never triggers delta generation.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone

from balena_release_update.logging import Logger, get_global_logger
from balena_release_update.platform import Delta, Image, PlatformClient
from balena_release_update.results import DeltaSnapshot, ImageSnapshot, ServiceUpdate
from balena_release_update.status import UpdateStatus

from .fanout import run_all

# Only v3 deltas are ever requested (devices on balenaOS >= 2.47.1).
DELTA_VERSION = 3

STALE_DELTA_WINDOW = timedelta(minutes=3)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot_image(image: Image) -> ImageSnapshot:
    return ImageSnapshot(
        id=image.id,
        location=image.location,
        content_hash=image.content_hash,
        size=image.size,
    )


def _snapshot_delta(delta: Delta) -> DeltaSnapshot:
    return DeltaSnapshot(
        id=delta.id,
        version=delta.version,
        location=delta.location or "",
        size=delta.size,
    )


def classify_delta(delta: Delta | None) -> tuple[UpdateStatus, DeltaSnapshot | None]:
    """Map the delta found for an image pair to a status and attachable delta."""
    if delta is None:
        return UpdateStatus.PENDING, None
    if delta.status == "success":
        return UpdateStatus.READY, _snapshot_delta(delta)
    if delta.status == "running":
        return UpdateStatus.PREPARING, None
    return UpdateStatus.PENDING, None


def resolve_service_update(
    client: PlatformClient,
    service_name: str,
    source_images: Mapping[str, int],
    target_images: Mapping[str, int],
    *,
    clock: Callable[[], datetime] = utcnow,
    logger: Logger | None = None,
) -> ServiceUpdate:
    """Compute the update record of one service.

    Args:
        client: Platform gateway.
        service_name: A service of the target release.
        source_images: Image id per service name in the source release.
        target_images: Image id per service name in the target release.
        clock: Returns the current time (timezone-aware).
        logger: Logger. Default is the global logger.

    Returns:
        The service's ServiceUpdate.

    Raises:
        NotFoundError: If either image is not available with build status
            "success".
        TransientPlatformError: On any other platform failure.
    """
    if logger is None:
        logger = get_global_logger()

    source_image_id = source_images.get(service_name)
    target_image_id = target_images[service_name]

    if source_image_id is None:
        logger.debug("DIFF", f"{service_name}: new service, image {target_image_id}")
        target_image = client.get_image(target_image_id)
        return ServiceUpdate(
            service_name=service_name,
            status=UpdateStatus.READY,
            target_image=_snapshot_image(target_image),
        )

    running_since = clock() - STALE_DELTA_WINDOW
    source_image, target_image, delta = run_all(
        [
            lambda: client.get_image(source_image_id),
            lambda: client.get_image(target_image_id),
            lambda: client.find_delta(
                DELTA_VERSION, source_image_id, target_image_id, running_since
            ),
        ]
    )

    status, attached = classify_delta(delta)
    logger.debug(
        "DIFF",
        f"{service_name}: images {source_image_id} -> {target_image_id}, "
        f"delta {delta.id if delta else None} ({delta.status if delta else 'none'}), "
        f"status {status.value}",
    )
    return ServiceUpdate(
        service_name=service_name,
        status=status,
        target_image=_snapshot_image(target_image),
        source_image=_snapshot_image(source_image),
        delta=attached,
    )
