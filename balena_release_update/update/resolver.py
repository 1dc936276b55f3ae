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

"""Release-to-release update resolution.

Resolves two release identifiers into a ReleaseUpdate: fetch both
releases, check they belong to the same application, diff every service
of the target release, and fold the per-service statuses into the overall
status and estimated download size.

Services that only exist in the source release are being removed, not
updated, so they do not appear in the result.

Resolution is read-only and safe to repeat; every call is a fresh
snapshot of platform state.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from functools import partial
import re

from balena_release_update.exceptions import ValidationError
from balena_release_update.logging import Logger, get_global_logger
from balena_release_update.platform import PlatformClient
from balena_release_update.results import ReleaseRef, ReleaseUpdate
from balena_release_update.status import summarize

from .diff import resolve_service_update, utcnow
from .fanout import run_all

_COMMIT_RE = re.compile(r"[a-zA-Z0-9]{6,40}")


def normalize_release_identifier(identifier: int | str) -> int | str:
    """Validate a release identifier and return its canonical form.

    A release is identified either by its numeric id or by (a prefix of)
    its commit hash. Strings made only of digits are taken as ids.

    Args:
        identifier: Release id, or commit hash of 6-40 alphanumerics.

    Returns:
        The id as an int, or the commit string.

    Raises:
        ValidationError: If the identifier is neither.
    """
    if isinstance(identifier, bool):
        raise ValidationError(f"Invalid release identifier: {identifier!r}")
    if isinstance(identifier, int):
        if identifier <= 0:
            raise ValidationError(f"Invalid release id: {identifier}")
        return identifier
    if isinstance(identifier, str):
        value = identifier.strip()
        if value.isdigit() and str(int(value)) == value:
            return normalize_release_identifier(int(value))
        if _COMMIT_RE.fullmatch(value):
            return value
    raise ValidationError(f"Invalid release identifier: {identifier!r}")


def resolve_release_update(
    client: PlatformClient,
    source: int | str,
    target: int | str,
    *,
    clock: Callable[[], datetime] = utcnow,
    logger: Logger | None = None,
) -> ReleaseUpdate:
    """Describe the update path from the source release to the target release.

    Args:
        client: Platform gateway.
        source: Source release id or commit.
        target: Target release id or commit.
        clock: Returns the current time (timezone-aware).
        logger: Logger. Default is the global logger.

    Returns:
        ReleaseUpdate with one ServiceUpdate per target service, ordered by
        service name.

    Raises:
        ValidationError: If an identifier is malformed or the releases
            belong to different applications.
        NotFoundError: If a release or image is not available with build
            status "success".
        TransientPlatformError: On any other platform failure.
    """
    if logger is None:
        logger = get_global_logger()

    source_id = normalize_release_identifier(source)
    target_id = normalize_release_identifier(target)

    logger.verbose("RESOLVE", f"Fetching releases {source_id} and {target_id}")
    source_release, target_release = run_all(
        [
            lambda: client.get_release(source_id),
            lambda: client.get_release(target_id),
        ]
    )

    if source_release.application_id != target_release.application_id:
        raise ValidationError(
            "Source and target release must be from the same application "
            f"(release {source_release.id} belongs to application "
            f"{source_release.application_id}, release {target_release.id} to "
            f"{target_release.application_id})"
        )

    service_names = sorted(target_release.images)
    removed = sorted(set(source_release.images) - set(target_release.images))
    if removed:
        logger.verbose("RESOLVE", f"Ignoring removed services: {', '.join(removed)}")
    logger.verbose(
        "RESOLVE",
        f"Diffing {len(service_names)} service(s): {', '.join(service_names)}",
    )

    service_updates = run_all(
        [
            partial(
                resolve_service_update,
                client,
                name,
                source_release.images,
                target_release.images,
                clock=clock,
                logger=logger,
            )
            for name in service_names
        ]
    )

    overall_status, size = summarize(service_updates)
    logger.verbose("RESOLVE", f"Overall status: {overall_status.value}")

    return ReleaseUpdate(
        source_release=ReleaseRef(id=source_release.id, commit=source_release.commit),
        target_release=ReleaseRef(id=target_release.id, commit=target_release.commit),
        service_updates=service_updates,
        overall_status=overall_status,
        estimated_total_payload_size=size,
    )
