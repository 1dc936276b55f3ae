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

"""Public API return types for balena-release-update.

This module defines the dataclasses returned by the update engine. They
are snapshots of platform state at resolution time; nothing here is
persisted or refreshed.

All dataclasses are frozen (immutable) to prevent accidental mutation of
return values.

The ``to_dict()`` methods produce the JSON document printed by the CLI,
using the platform's resource field names:

    {
      "originates_from__release": {"id": 900813, "commit": "84d3..."},
      "produces__release": {"id": 900835, "commit": "b2cf..."},
      "is_produced_by__service_update": [
        {
          "service_name": "main",
          "status": "ready",
          "originates_from__image": {...},
          "produces__image": {..., "is_produced_by__delta": {...}}
        }
      ],
      "overall_status": "ready",
      "estimated_total_payload_size": 484575
    }

Example:
    ```python
    from balena_release_update.core import get_update_info

    update = get_update_info(client, 900813, 900835)
    print(update.overall_status.value)
    for su in update.service_updates:
        print(su.service_name, su.status.value)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from balena_release_update.status import UpdateStatus


@dataclass(frozen=True)
class ReleaseRef:
    """Identity of a release.

    Attributes:
        id: Numeric release id.
        commit: Release commit hash.
    """

    id: int
    commit: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "commit": self.commit}


@dataclass(frozen=True)
class ImageSnapshot:
    """A successfully built service image.

    Attributes:
        id: Numeric image id.
        location: Registry location the image is stored at.
        content_hash: Image content digest (e.g., "sha256:...").
        size: Image size in bytes.
    """

    id: int
    location: str
    content_hash: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "is_stored_at__image_location": self.location,
            "content_hash": self.content_hash,
            "image_size": self.size,
        }


@dataclass(frozen=True)
class DeltaSnapshot:
    """A usable binary delta between two images.

    Attributes:
        id: Numeric delta id.
        version: Delta protocol version (2 or 3).
        location: Where the delta is stored.
        size: Delta size in bytes.
    """

    id: int
    version: int
    location: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "version": self.version,
            "is_stored_at__location": self.location,
            "size": self.size,
        }


@dataclass(frozen=True)
class ServiceUpdate:
    """How one service moves from its source image to its target image.

    Attributes:
        service_name: Service name, unique within a release.
        status: Readiness of this service's update.
        target_image: Image the service runs in the target release.
        source_image: Image the service runs in the source release, or None
            if the service is new in the target release.
        delta: The usable delta between the two images. Only set when
            status is READY and a delta was found.
    """

    service_name: str
    status: UpdateStatus
    target_image: ImageSnapshot
    source_image: ImageSnapshot | None = None
    delta: DeltaSnapshot | None = None

    @property
    def is_new_service(self) -> bool:
        return self.source_image is None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "service_name": self.service_name,
            "status": self.status.value,
        }
        if self.source_image is not None:
            d["originates_from__image"] = self.source_image.to_dict()
        produces = self.target_image.to_dict()
        if self.delta is not None:
            produces["is_produced_by__delta"] = self.delta.to_dict()
        d["produces__image"] = produces
        return d


@dataclass(frozen=True)
class ReleaseUpdate:
    """Everything it takes to move a device from one release to another.

    Attributes:
        source_release: Release the device runs now.
        target_release: Release the device should run.
        service_updates: One entry per service of the target release,
            ordered by service name.
        overall_status: Least-ready status among the service updates.
        estimated_total_payload_size: Bytes to download, only set when
            overall_status is READY.
    """

    source_release: ReleaseRef
    target_release: ReleaseRef
    service_updates: list[ServiceUpdate] = field(default_factory=list)
    overall_status: UpdateStatus = UpdateStatus.READY
    estimated_total_payload_size: int | None = None

    @property
    def is_ready(self) -> bool:
        return self.overall_status is UpdateStatus.READY

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "originates_from__release": self.source_release.to_dict(),
            "produces__release": self.target_release.to_dict(),
            "is_produced_by__service_update": [
                su.to_dict() for su in self.service_updates
            ],
            "overall_status": self.overall_status.value,
        }
        if self.estimated_total_payload_size is not None:
            d["estimated_total_payload_size"] = self.estimated_total_payload_size
        return d
