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

"""Exception hierarchy for balena-release-update.

This module defines the errors raised by the update engine so that library
users and the CLI can tell apart the different ways a resolution can fail:

- ConfigError: Settings problems (YAML parse, missing token, bad values)
- ValidationError: Inputs that can never succeed (malformed identifiers,
  releases from different applications, ambiguous commits)
- NotFoundError: A release or image is not available with build status
  "success"
- TransientPlatformError: Any other failure talking to the platform API
- ReadinessTimeoutError: The wait deadline passed before the update was ready

All exceptions inherit from ReleaseUpdateError, allowing users to catch all
errors from this package with a single except clause if needed.

Example:
    Catching specific error types:
        ```python
        from balena_release_update.core import get_update_info
        from balena_release_update.exceptions import NotFoundError, ValidationError

        try:
            update = get_update_info(client, 900813, 900835)
        except ValidationError as e:
            print(f"Invalid release pair: {e}")
        except NotFoundError as e:
            print(f"Not found: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "ReleaseUpdateError",
    "ConfigError",
    "ValidationError",
    "NotFoundError",
    "TransientPlatformError",
    "ReadinessTimeoutError",
]


class ReleaseUpdateError(Exception):
    """Base exception for all balena-release-update errors."""

    pass


class ConfigError(ReleaseUpdateError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - YAML parsing of a settings file
    - A settings file given explicitly that does not exist
    - Missing API token
    - Invalid values (e.g., a non-numeric request timeout)
    """

    pass


class ValidationError(ReleaseUpdateError):
    """Raised when the inputs of a resolution can never succeed.

    This exception is raised when:

    - A release identifier is neither a positive id nor a commit-like string
    - A short commit matches more than one release
    - The source and target release belong to different applications

    Not retried; a later poll with the same inputs fails the same way.
    """

    pass


class NotFoundError(ReleaseUpdateError):
    """Raised when a release or image cannot be resolved.

    Only releases and images with build status "success" are considered, so
    a release that is still building is reported as not found. A later poll
    may succeed once the platform state changes.
    """

    pass


class TransientPlatformError(ReleaseUpdateError):
    """Raised for any other failure from the platform API.

    This covers connection errors, timeouts, 5xx responses and unexpected
    status codes from the delta trigger endpoint. The engine never retries
    these itself; the HTTP session and the readiness poller own retrying.

    Attributes:
        status_code: HTTP status code of the failing response, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ReadinessTimeoutError(ReleaseUpdateError, TimeoutError):
    """Raised when the wait deadline elapses before the update is ready.

    Also a subclass of the builtin TimeoutError.
    """

    pass
