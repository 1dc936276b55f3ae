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

"""Update status ordering and aggregation.

A release-to-release update is only as ready as its least-ready service.
This module defines the three statuses a service update can be in, their
total order, and the folding of per-service statuses into one overall
status and an estimated download size.

Ordering:

    PENDING < PREPARING < READY

- PENDING: a delta is needed but nobody has asked for it yet
- PREPARING: the platform is computing the delta
- READY: the service can be updated now (delta available, or a from-scratch
  install that never needs one)

Example:
    ```python
    from balena_release_update.status import UpdateStatus, aggregate_status

    aggregate_status([UpdateStatus.READY, UpdateStatus.PREPARING])
    # UpdateStatus.PREPARING
    aggregate_status([])
    # UpdateStatus.READY
    ```
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
import functools
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from balena_release_update.results import ServiceUpdate


@functools.total_ordering
class UpdateStatus(Enum):
    """Readiness of a service update, or of a whole release update.

    The value is the name used in the JSON document. Members compare by
    readiness, so ``min()`` yields the least-ready status.
    """

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, UpdateStatus):
            return NotImplemented
        return self.rank < other.rank


_RANK = {
    UpdateStatus.PENDING: 0,
    UpdateStatus.PREPARING: 1,
    UpdateStatus.READY: 2,
}


def aggregate_status(statuses: Iterable[UpdateStatus]) -> UpdateStatus:
    """Return the least-ready status, or READY when there are none."""
    return min(statuses, default=UpdateStatus.READY)


def estimate_payload_size(service_updates: Iterable[ServiceUpdate]) -> int:
    """Sum the bytes a device would download for these service updates.

    Each service contributes its delta size when a delta is attached, and
    the full target image size otherwise.
    """
    total = 0
    for su in service_updates:
        if su.delta is not None:
            total += su.delta.size
        else:
            total += su.target_image.size
    return total


def summarize(
    service_updates: list[ServiceUpdate],
) -> tuple[UpdateStatus, int | None]:
    """Fold service updates into the overall status and estimated size.

    Args:
        service_updates: Per-service update records.

    Returns:
        A tuple (overall_status, estimated_total_payload_size). The size is
        None unless the overall status is READY.
    """
    overall = aggregate_status(su.status for su in service_updates)
    if overall is not UpdateStatus.READY:
        return overall, None
    return overall, estimate_payload_size(service_updates)
