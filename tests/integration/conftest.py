"""Integration test fixtures against a live Redis.

A ``redis:7-alpine`` container is started through Docker for the session;
tests are skipped when Docker is unavailable. ``QUIRE_TEST_REDIS_URL``
points the suite at an existing Redis instead:

    QUIRE_TEST_REDIS_URL=redis://localhost:6379/15 pytest tests/integration

Every test gets its own key prefix and its keys are removed afterwards.
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse
from uuid import uuid4

import pytest
import pytest_asyncio
from redis.asyncio import Redis

from quire.jobs.service import JobQueueService
from quire.observability.metrics import MetricsRegistry
from quire.store.keys import QueueKeys
from quire.store.redis import create_redis

if TYPE_CHECKING:
    from docker.client import DockerClient
    from docker.models.containers import Container
else:
    DockerClient = Any
    Container = Any

REDIS_IMAGE = "redis:7-alpine"


def get_docker_client() -> DockerClient:
    """Create a Docker client from environment settings."""
    import docker

    return docker.from_env()


def get_docker_host(client: DockerClient) -> str:
    """Resolve the host to connect to published container ports."""
    base_url = client.api.base_url
    if base_url.startswith(("unix://", "npipe://", "http+docker://")):
        return "localhost"
    return urlparse(base_url).hostname or "localhost"


@dataclass
class DockerService:
    """Handle for a running container and its connection info."""

    container: Container
    host: str

    def port(self, container_port: int, protocol: str = "tcp") -> int:
        """Get the bound host port for a container port."""
        self.container.reload()
        key = f"{container_port}/{protocol}"
        ports = self.container.attrs["NetworkSettings"]["Ports"].get(key)
        if not ports:
            raise RuntimeError(f"Port {key} not exposed on container {self.container.short_id}")
        return int(ports[0]["HostPort"])


@contextmanager
def run_container(
    client: DockerClient,
    image: str,
    *,
    ports: Mapping[str, int | None] | None = None,
) -> Iterator[DockerService]:
    """Run a detached container and remove it on exit."""
    container = client.containers.run(image, detach=True, ports=ports)
    try:
        yield DockerService(container=container, host=get_docker_host(client))
    finally:
        container.remove(force=True, v=True)


async def _wait_for_redis(client: Redis, timeout: float = 30.0) -> None:
    """Wait for Redis to accept connections."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            await client.ping()
            return
        except Exception:
            if time.monotonic() >= deadline:
                raise
            await asyncio.sleep(0.5)


@pytest.fixture(scope="session")
def docker_client():
    """Create a Docker client or skip if Docker is unavailable."""
    try:
        client = get_docker_client()
        client.ping()
    except Exception as exc:
        pytest.skip(f"Docker not available: {exc}")
    yield client
    client.close()


@pytest.fixture(scope="session")
def redis_container(docker_client) -> Iterator[DockerService]:
    """Start a Redis container for the test session."""
    with run_container(docker_client, REDIS_IMAGE, ports={"6379/tcp": None}) as redis:
        yield redis


@pytest.fixture(scope="session")
def redis_url(request: pytest.FixtureRequest) -> str:
    """The configured Redis URL, or one for a container started here."""
    url = os.environ.get("QUIRE_TEST_REDIS_URL")
    if url:
        return url
    container: DockerService = request.getfixturevalue("redis_container")
    return f"redis://{container.host}:{container.port(6379)}/0"


@pytest_asyncio.fixture
async def redis_client(redis_url: str) -> AsyncIterator[Redis]:
    client = create_redis(redis_url)
    await _wait_for_redis(client)
    yield client
    await client.aclose()


@pytest.fixture
def keys() -> QueueKeys:
    return QueueKeys(f"quire-test-{uuid4().hex[:8]}")


@pytest_asyncio.fixture
async def service(redis_client: Redis, keys: QueueKeys) -> AsyncIterator[JobQueueService]:
    svc = JobQueueService(redis_client, keys=keys)
    svc.queue.metrics = MetricsRegistry()
    yield svc
    await svc.stop_worker()
    stale = [key async for key in redis_client.scan_iter(match=f"{keys.prefix}:*")]
    if stale:
        await redis_client.delete(*stale)
