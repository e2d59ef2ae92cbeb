"""Registry of the resource kinds this provider manages."""

from __future__ import annotations

from collections.abc import Callable

from .api_client import api_client_resource
from .cloudip import cloud_ip_resource
from .config import Config
from .lifecycle import Resource

RESOURCE_FACTORIES: dict[str, Callable[[Config | None], Resource]] = {
    "api_client": api_client_resource,
    "cloud_ip": cloud_ip_resource,
}


def resources(config: Config | None = None) -> dict[str, Resource]:
    """Build every resource kind with the given configuration."""
    return {kind: factory(config) for kind, factory in RESOURCE_FACTORIES.items()}


def get_resource(kind: str, config: Config | None = None) -> Resource:
    """Build one resource kind.

    Raises:
        ValueError: If the kind is not recognized.
    """
    factory = RESOURCE_FACTORIES.get(kind)
    if factory is None:
        raise ValueError(f"Unknown resource kind '{kind}'. Valid kinds: {list(RESOURCE_FACTORIES)}")
    return factory(config)
