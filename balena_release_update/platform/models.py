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

"""Platform records as returned by the query gateway.

These are thin, typed views of the platform's release, image and delta
resources, carrying only the fields the update engine reads. They are
distinct from the snapshot types in ``balena_release_update.results``,
which form the engine's output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Release:
    """A successfully built release.

    Attributes:
        id: Numeric release id.
        commit: Release commit hash.
        application_id: Id of the owning application.
        images: Image id per service name.
    """

    id: int
    commit: str
    application_id: int
    images: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Image:
    """A successfully built service image."""

    id: int
    location: str
    content_hash: str
    size: int


@dataclass(frozen=True)
class Delta:
    """A delta record; version, location and size are only meaningful on success."""

    id: int
    status: str
    version: int
    location: str | None = None
    size: int = 0


class DeltaTrigger(Enum):
    """Outcome of asking the delta service to generate a delta."""

    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
