"""
Pytest configuration and shared fixtures for balena-release-update tests.

This module provides an in-memory platform client, a controllable clock and
builders for the common release layouts used across the test suite.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import threading
from typing import Any

import pytest

from balena_release_update.exceptions import NotFoundError
from balena_release_update.platform import Delta, DeltaTrigger, Image, Release

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock whose time only moves when told to (or when 'slept')."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


class FakePlatformClient:
    """In-memory PlatformClient.

    Delta lookup applies the same filter the platform API applies: the
    newest successful delta, or a running one updated after running_since.
    """

    def __init__(self) -> None:
        self.releases: dict[int, Release] = {}
        self.images: dict[int, Image] = {}
        self.deltas: list[tuple[Delta, int, int, datetime]] = []
        self.trigger_outcome: DeltaTrigger | Exception = DeltaTrigger.ACCEPTED
        self.calls: list[tuple[Any, ...]] = []
        self._lock = threading.Lock()

    def _record(self, *call: Any) -> None:
        with self._lock:
            self.calls.append(call)

    def calls_to(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]

    # -- builders --

    def add_release(
        self, release_id: int, commit: str, app_id: int, images: dict[str, int]
    ) -> Release:
        release = Release(
            id=release_id, commit=commit, application_id=app_id, images=images
        )
        self.releases[release_id] = release
        return release

    def add_image(self, image_id: int, size: int = 1000) -> Image:
        image = Image(
            id=image_id,
            location=f"registry2.example.com/v2/{image_id:032x}",
            content_hash=f"sha256:{image_id:064x}",
            size=size,
        )
        self.images[image_id] = image
        return image

    def add_delta(
        self,
        delta_id: int,
        src: int,
        dest: int,
        status: str = "success",
        size: int = 100,
        updated_at: datetime = NOW,
        version: int = 3,
    ) -> Delta:
        delta = Delta(
            id=delta_id,
            status=status,
            version=version,
            location=f"registry2.example.com/v2/{dest:032x}:delta-{delta_id}",
            size=size,
        )
        self.deltas.append((delta, src, dest, updated_at))
        return delta

    # -- PlatformClient --

    def get_release(self, identifier: int | str) -> Release:
        self._record("get_release", identifier)
        if isinstance(identifier, int):
            release = self.releases.get(identifier)
        else:
            matches = [
                r for r in self.releases.values() if r.commit.startswith(identifier)
            ]
            release = matches[0] if len(matches) == 1 else None
        if release is None:
            raise NotFoundError(f"Release not found: {identifier}")
        return release

    def get_image(self, image_id: int) -> Image:
        self._record("get_image", image_id)
        if image_id not in self.images:
            raise NotFoundError(f"Image not found: {image_id}")
        return self.images[image_id]

    def find_delta(
        self, version: int, source_image_id: int, target_image_id: int, running_since
    ) -> Delta | None:
        self._record("find_delta", version, source_image_id, target_image_id, running_since)
        candidates = [
            delta
            for delta, src, dest, updated_at in self.deltas
            if delta.version == version
            and src == source_image_id
            and dest == target_image_id
            and (
                delta.status == "success"
                or (delta.status == "running" and updated_at > running_since)
            )
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda d: d.id)

    def request_delta(
        self, version: int, source_image_id: int, target_image_id: int
    ) -> DeltaTrigger:
        self._record("request_delta", version, source_image_id, target_image_id)
        if isinstance(self.trigger_outcome, Exception):
            raise self.trigger_outcome
        return self.trigger_outcome


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock starting at NOW."""
    return FakeClock()


@pytest.fixture
def client() -> FakePlatformClient:
    """Provide an empty in-memory platform client."""
    return FakePlatformClient()


@pytest.fixture
def single_service_client(client: FakePlatformClient) -> FakePlatformClient:
    """
    Provide a client with two releases of app 1 running service 'main'.

    Release 10 runs image 100 (A), release 20 runs image 200 (B). No deltas.
    """
    client.add_image(100, size=310905195)
    client.add_image(200, size=310954877)
    client.add_release(10, "84d3d8f43eddd81b1699552dd39338f8", 1, {"main": 100})
    client.add_release(20, "b2cf2db7fece36f10e6a7e815ab169fd", 1, {"main": 200})
    return client
