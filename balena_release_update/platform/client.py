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

"""Platform query gateway for balena-release-update.

The update engine talks to the platform through the ``PlatformClient``
protocol: four calls covering release lookup, image lookup, delta lookup
and the delta trigger. ``ApiClient`` implements the protocol over the
platform's OData-style REST API with requests; tests substitute an
in-memory fake.

Queries:

- Release: ``GET /v6/release(<id>)`` or ``GET /v6/release`` filtered by
  commit prefix, restricted to ``status eq 'success'`` and expanding
  ``release_image/image/is_a_build_of__service`` for the service names.
- Image: ``GET /v6/image(<id>)`` restricted to ``status eq 'success'``.
- Delta: ``GET /v6/delta`` filtered by version, source image, destination
  image and "success, or running and updated recently", newest first,
  at most one row.
- Trigger: ``GET <delta_url>/api/v<version>/delta?src=<id>&dest=<id>``.

Error Handling:

- NotFoundError: 404 responses or empty result sets
- ValidationError: a commit prefix matching several releases
- TransientPlatformError: any other HTTP status or transport failure
- Errors are chained with 'from err' for better debugging

Example:
    ```python
    from balena_release_update.config import load_settings
    from balena_release_update.platform import ApiClient

    client = ApiClient.from_settings(load_settings())
    release = client.get_release(900813)
    print(release.commit, release.images)
    ```
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol, TypeVar
from urllib.parse import quote

import requests

from balena_release_update.config import PlatformSettings
from balena_release_update.exceptions import (
    ConfigError,
    NotFoundError,
    TransientPlatformError,
    ValidationError,
)
from balena_release_update.logging import get_global_logger

from .models import Delta, DeltaTrigger, Image, Release
from .session import make_session

T = TypeVar("T")

API_VERSION = "v6"

_RELEASE_SELECT = "id,commit,belongs_to__application"
_RELEASE_EXPAND = (
    "release_image($select=id;"
    "$expand=image($select=id;"
    "$expand=is_a_build_of__service($select=service_name)))"
)
_IMAGE_SELECT = "id,is_stored_at__image_location,content_hash,image_size"
_DELTA_SELECT = "id,status,version,is_stored_at__location,size"

# Characters OData needs literally in a query option value
_ODATA_SAFE = "$'(),=;:"


class PlatformClient(Protocol):
    """Queries and triggers the update engine needs from the platform."""

    def get_release(self, identifier: int | str) -> Release:
        """Fetch a successfully built release by id or commit.

        Raises:
            NotFoundError: If no such release exists with status "success".
        """
        ...

    def get_image(self, image_id: int) -> Image:
        """Fetch a successfully built image by id.

        Raises:
            NotFoundError: If no such image exists with status "success".
        """
        ...

    def find_delta(
        self,
        version: int,
        source_image_id: int,
        target_image_id: int,
        running_since: datetime,
    ) -> Delta | None:
        """Find the newest successful delta, or a running one updated after
        running_since, between two images."""
        ...

    def request_delta(
        self, version: int, source_image_id: int, target_image_id: int
    ) -> DeltaTrigger:
        """Ask the delta service to generate a delta between two images.

        Raises:
            TransientPlatformError: On any response other than accepted or
                in progress.
        """
        ...


def odata_datetime(moment: datetime) -> str:
    """Format an aware datetime as an OData datetime literal (UTC)."""
    if moment.tzinfo is None:
        raise ValueError("odata_datetime requires a timezone-aware datetime")
    utc = moment.astimezone(timezone.utc)
    return f"datetime'{utc.strftime('%Y-%m-%dT%H:%M:%S.')}{utc.microsecond // 1000:03d}Z'"


def _to_int(value: Any) -> int:
    # The API serializes big integers (sizes) as strings.
    return int(value or 0)


def _application_id(raw: Any) -> int:
    if isinstance(raw, dict):
        return int(raw.get("__id", raw.get("id")))
    if isinstance(raw, list) and raw:
        return int(raw[0]["id"])
    return int(raw)


def _first(raw: Any) -> dict[str, Any] | None:
    """Expanded navigation properties come back as one-element lists."""
    if isinstance(raw, list):
        return raw[0] if raw else None
    return raw


def _parse_release(row: dict[str, Any]) -> Release:
    images: dict[str, int] = {}
    for release_image in row.get("release_image", []):
        image = _first(release_image.get("image"))
        if image is None:
            continue
        service = _first(image.get("is_a_build_of__service"))
        if service is None:
            continue
        images[service["service_name"]] = int(image["id"])
    return Release(
        id=int(row["id"]),
        commit=row["commit"],
        application_id=_application_id(row["belongs_to__application"]),
        images=images,
    )


def _parse_image(row: dict[str, Any]) -> Image:
    return Image(
        id=int(row["id"]),
        location=row.get("is_stored_at__image_location") or "",
        # Successfully built images always carry a content hash and size.
        content_hash=row.get("content_hash") or "",
        size=_to_int(row.get("image_size")),
    )


def _parse_delta(row: dict[str, Any]) -> Delta:
    return Delta(
        id=int(row["id"]),
        status=row["status"],
        # Only successful deltas carry a version, location and size.
        version=_to_int(row.get("version")),
        location=row.get("is_stored_at__location"),
        size=_to_int(row.get("size")),
    )


def _parse_row(
    resource: str, parse: Callable[[dict[str, Any]], T], row: Any
) -> T:
    try:
        return parse(row)
    except (KeyError, TypeError, ValueError, AttributeError) as err:
        raise TransientPlatformError(
            f"Unexpected API response for {resource}"
        ) from err


class ApiClient:
    """PlatformClient backed by the platform REST API.

    Args:
        settings: Resolved platform settings (URLs, token, timeout).
        session: Optional requests session. Default is make_session().
    """

    def __init__(
        self,
        settings: PlatformSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings
        self._session = session or make_session()

    @classmethod
    def from_settings(cls, settings: PlatformSettings) -> ApiClient:
        """Build a client, requiring an API token.

        Raises:
            ConfigError: If the settings carry no token.
        """
        if not settings.token:
            raise ConfigError(
                "No API token configured. Set BALENA_API_KEY, add apiKey to "
                ".balenarc.yml, or run 'balena login'."
            )
        return cls(settings)

    # -------------------------------
    # HTTP helpers
    # -------------------------------

    def _headers(self) -> dict[str, str]:
        if self._settings.token:
            return {"Authorization": f"Bearer {self._settings.token}"}
        return {}

    def _query(self, resource: str, options: dict[str, str]) -> list[dict[str, Any]]:
        """Run an OData query and return the result rows.

        The query string is encoded by hand: OData needs %20 for spaces
        and literal $ ( ) ' , = ; characters.
        """
        logger = get_global_logger()
        query = "&".join(
            f"{key}={quote(value, safe=_ODATA_SAFE)}"
            for key, value in options.items()
        )
        url = f"{self._settings.api_url}/{API_VERSION}/{resource}?{query}"
        logger.debug("HTTP", f"GET {url}")

        try:
            response = self._session.get(
                url, headers=self._headers(), timeout=self._settings.timeout
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as err:
            if response.status_code == 404:
                raise NotFoundError(f"{resource} not found") from err
            raise TransientPlatformError(
                f"API request for {resource} failed: {response.status_code} "
                f"{response.reason}",
                status_code=response.status_code,
            ) from err
        except requests.exceptions.RequestException as err:
            raise TransientPlatformError(
                f"API request for {resource} failed: {err}"
            ) from err

        try:
            return response.json()["d"]
        except (ValueError, KeyError, TypeError) as err:
            raise TransientPlatformError(
                f"Unexpected API response for {resource}"
            ) from err

    # -------------------------------
    # PlatformClient
    # -------------------------------

    def get_release(self, identifier: int | str) -> Release:
        options = {
            "$select": _RELEASE_SELECT,
            "$expand": _RELEASE_EXPAND,
        }
        if isinstance(identifier, int):
            resource = f"release({identifier})"
            options["$filter"] = "status eq 'success'"
        else:
            resource = "release"
            options["$filter"] = (
                f"startswith(commit,'{identifier}') and status eq 'success'"
            )

        rows = self._query(resource, options)
        if not rows:
            raise NotFoundError(
                f"Release not found or not successfully built: {identifier}"
            )
        if len(rows) > 1:
            commits = ", ".join(str(row.get("commit")) for row in rows)
            raise ValidationError(
                f"Commit {identifier!r} is ambiguous; matching releases: {commits}"
            )
        return _parse_row(resource, _parse_release, rows[0])

    def get_image(self, image_id: int) -> Image:
        rows = self._query(
            f"image({image_id})",
            {
                "$select": _IMAGE_SELECT,
                "$filter": "status eq 'success'",
            },
        )
        if not rows:
            raise NotFoundError(
                f"Image not found or not successfully built: {image_id}"
            )
        return _parse_row(f"image({image_id})", _parse_image, rows[0])

    def find_delta(
        self,
        version: int,
        source_image_id: int,
        target_image_id: int,
        running_since: datetime,
    ) -> Delta | None:
        # At most one successful and one running delta exist per image pair,
        # and never both, so the newest row is the only candidate.
        delta_filter = (
            f"version eq {version}"
            f" and originates_from__image eq {source_image_id}"
            f" and produces__image eq {target_image_id}"
            " and (status eq 'success' or (status eq 'running'"
            f" and update_timestamp gt {odata_datetime(running_since)}))"
        )
        rows = self._query(
            "delta",
            {
                "$top": "1",
                "$orderby": "id desc",
                "$select": _DELTA_SELECT,
                "$filter": delta_filter,
            },
        )
        if not rows:
            return None
        return _parse_row("delta", _parse_delta, rows[0])

    def request_delta(
        self, version: int, source_image_id: int, target_image_id: int
    ) -> DeltaTrigger:
        logger = get_global_logger()
        url = f"{self._settings.delta_url}/api/v{version}/delta"
        params = {"src": source_image_id, "dest": target_image_id}
        logger.debug("HTTP", f"GET {url}?src={source_image_id}&dest={target_image_id}")

        try:
            response = self._session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self._settings.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as err:
            raise TransientPlatformError(f"Delta request failed: {err}") from err

        # v3 answers 200 with the delta image name in the body, v2 redirects
        # to storage; both mean the request was taken.
        if response.status_code in (200, 302):
            return DeltaTrigger.ACCEPTED
        if response.status_code == 504:
            return DeltaTrigger.IN_PROGRESS
        raise TransientPlatformError(
            f"Delta request for images {source_image_id} -> {target_image_id} "
            f"failed: {response.status_code} {response.reason}",
            status_code=response.status_code,
        )
