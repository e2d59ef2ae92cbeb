"""Generic Create/Read/Update/Delete over a resource descriptor.

Every resource kind needs the same four callbacks. They differ only in the
API functions they call and in how fields map onto option structs and back,
so both are injected through a ResourceDescriptor:

    descriptor = ResourceDescriptor(
        kind="API client",
        create=lambda client, opts: client.create_api_client(opts),
        ...
    )
    resource = Resource.generic(descriptor, SCHEMA)
    diags = await resource.create(client, data)

The API handle is passed into every call. Nothing here holds a client or
any other state between calls.

Blocking API functions run in the default executor and are bounded by the
operation timeout, so a stuck request cannot hold the event loop.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from azure.core.exceptions import AzureError

from .config import Operation, Timeouts
from .diagnostics import Diagnostics
from .errors import ProviderError, RemoteAPIError, RemoteNotFound, classify_api_error
from .fields import ResourceData, Schema

logger = logging.getLogger(__name__)

SnapshotT = TypeVar("SnapshotT")
OptionsT = TypeVar("OptionsT")

LifecycleFunc = Callable[[Any, ResourceData], Awaitable[Diagnostics]]


@dataclass(frozen=True)
class ResourceDescriptor(Generic[SnapshotT, OptionsT]):
    """Immutable binding of API functions and field mappers for one kind.

    Snapshots returned by the API functions must expose an ``id`` attribute.

    Attributes:
        kind: Human readable label used in messages, e.g. "Cloud IP".
        create: (client, options) -> snapshot
        read: (client, identifier) -> snapshot
        update: (client, options) -> snapshot
        delete: (client, identifier) -> None
        options_from_id: Builds an empty option struct, seeded with the
            identifier when one is given.
        build_options: Copies changed declared fields onto an option struct.
        set_attributes: Writes a snapshot back into the declaration.
        is_absent: Optional predicate for snapshots that exist remotely but
            must be treated as gone (revoked, deleted).
    """

    kind: str
    create: Callable[[Any, OptionsT], SnapshotT]
    read: Callable[[Any, str], SnapshotT]
    update: Callable[[Any, OptionsT], SnapshotT]
    delete: Callable[[Any, str], None]
    options_from_id: Callable[[str | None], OptionsT]
    build_options: Callable[[ResourceData, OptionsT], Diagnostics]
    set_attributes: Callable[[ResourceData, SnapshotT], Diagnostics]
    is_absent: Callable[[SnapshotT], bool] | None = None


async def call_api(
    kind: str,
    action: str,
    func: Callable[..., Any],
    *args: Any,
    resource_id: str | None = None,
    timeout: float,
) -> Any:
    """Run a blocking API function with a deadline.

    Args:
        kind: Resource-kind label for error messages.
        action: Verb for error messages, e.g. "creating".
        func: The API function.
        *args: Positional arguments for func.
        resource_id: Identifier of the addressed resource, if any.
        timeout: Seconds before the call is abandoned.

    Raises:
        RemoteNotFound: If the API reports the resource missing.
        RemoteAPIError: On any other API failure or on timeout.
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(None, functools.partial(func, *args)),
            timeout=timeout,
        )
    except TimeoutError as e:
        logger.error(
            f"{kind} API call timed out",
            extra={"action": action, "resource_id": resource_id, "timeout_seconds": timeout},
        )
        raise RemoteAPIError(
            kind, action, resource_id, TimeoutError(f"timed out after {timeout:g}s")
        ) from e
    except AzureError as e:
        raise classify_api_error(e, kind, action, resource_id) from e


def build_create_options(
    descriptor: ResourceDescriptor[Any, OptionsT], data: ResourceData
) -> tuple[OptionsT, Diagnostics]:
    """Option struct carrying every declared updateable field."""
    opts = descriptor.options_from_id(None)
    return opts, descriptor.build_options(data, opts)


def build_update_options(
    descriptor: ResourceDescriptor[Any, OptionsT], data: ResourceData
) -> tuple[OptionsT, Diagnostics]:
    """Option struct seeded with the identifier plus the changed fields only."""
    opts = descriptor.options_from_id(data.id)
    return opts, descriptor.build_options(data, opts)


async def create(
    descriptor: ResourceDescriptor[Any, Any], client: Any, data: ResourceData
) -> Diagnostics:
    """Create the remote resource and record its identifier and attributes.

    On API failure no identifier is stored, so the declaration stays
    "not yet created".
    """
    logger.info(f"Creating {descriptor.kind}", extra={"resource_kind": descriptor.kind})
    opts, diags = build_create_options(descriptor, data)
    if diags.has_error():
        return diags

    logger.debug(
        f"{descriptor.kind} create configuration",
        extra={"resource_kind": descriptor.kind, "options": repr(opts)},
    )
    try:
        snapshot = await call_api(
            descriptor.kind,
            "creating",
            descriptor.create,
            client,
            opts,
            timeout=data.timeout(Operation.CREATE),
        )
    except ProviderError as e:
        diags.add_error(e)
        return diags

    data.set_id(snapshot.id)
    logger.info(
        f"Created {descriptor.kind}",
        extra={"resource_kind": descriptor.kind, "resource_id": snapshot.id},
    )
    diags.extend(descriptor.set_attributes(data, snapshot))
    return diags


async def read(
    descriptor: ResourceDescriptor[Any, Any], client: Any, data: ResourceData
) -> Diagnostics:
    """Refresh attributes from the remote resource.

    A missing or revoked resource clears the identifier and reports success:
    the caller treats an empty identifier as "must recreate".
    """
    try:
        snapshot = await call_api(
            descriptor.kind,
            "retrieving",
            descriptor.read,
            client,
            data.id,
            resource_id=data.id,
            timeout=data.timeout(Operation.READ),
        )
    except RemoteNotFound:
        logger.warning(
            f"{descriptor.kind} not found, removing from state",
            extra={"resource_kind": descriptor.kind, "resource_id": data.id},
        )
        data.set_id("")
        return Diagnostics()
    except RemoteAPIError as e:
        return Diagnostics.from_error(e)

    if descriptor.is_absent is not None and descriptor.is_absent(snapshot):
        logger.warning(
            f"{descriptor.kind} revoked, removing from state",
            extra={"resource_kind": descriptor.kind, "resource_id": data.id},
        )
        data.set_id("")
        return Diagnostics()

    logger.debug(
        f"{descriptor.kind} read",
        extra={"resource_kind": descriptor.kind, "resource_id": data.id},
    )
    return descriptor.set_attributes(data, snapshot)


async def update(
    descriptor: ResourceDescriptor[Any, Any], client: Any, data: ResourceData
) -> Diagnostics:
    """Send the changed fields as a partial patch and refresh attributes."""
    opts, diags = build_update_options(descriptor, data)
    if diags.has_error():
        return diags

    logger.debug(
        f"{descriptor.kind} update configuration",
        extra={"resource_kind": descriptor.kind, "resource_id": data.id, "options": repr(opts)},
    )
    try:
        snapshot = await call_api(
            descriptor.kind,
            "updating",
            descriptor.update,
            client,
            opts,
            resource_id=data.id,
            timeout=data.timeout(Operation.UPDATE),
        )
    except ProviderError as e:
        diags.add_error(e)
        return diags

    diags.extend(descriptor.set_attributes(data, snapshot))
    return diags


async def delete(
    descriptor: ResourceDescriptor[Any, Any], client: Any, data: ResourceData
) -> Diagnostics:
    """Delete the remote resource. Already gone counts as success."""
    logger.info(
        f"Deleting {descriptor.kind}",
        extra={"resource_kind": descriptor.kind, "resource_id": data.id},
    )
    try:
        await call_api(
            descriptor.kind,
            "deleting",
            descriptor.delete,
            client,
            data.id,
            resource_id=data.id,
            timeout=data.timeout(Operation.DELETE),
        )
    except RemoteNotFound:
        logger.info(
            f"{descriptor.kind} already deleted",
            extra={"resource_kind": descriptor.kind, "resource_id": data.id},
        )
    except RemoteAPIError as e:
        return Diagnostics.from_error(e)

    data.set_id("")
    return Diagnostics()


@dataclass(frozen=True)
class Resource:
    """The four lifecycle callbacks of a resource kind, plus its schema.

    Each callback takes (client, data) and returns Diagnostics.
    """

    kind: str
    schema: Schema
    create: LifecycleFunc
    read: LifecycleFunc
    update: LifecycleFunc
    delete: LifecycleFunc
    timeouts: Timeouts = field(default_factory=Timeouts)
    description: str = ""
    descriptor: ResourceDescriptor[Any, Any] | None = None

    @classmethod
    def generic(
        cls,
        descriptor: ResourceDescriptor[Any, Any],
        schema: Schema,
        *,
        timeouts: Timeouts | None = None,
        description: str = "",
        **overrides: LifecycleFunc,
    ) -> Resource:
        """Build the standard callbacks from a descriptor.

        Keyword overrides replace individual callbacks, for kinds that wrap
        the generic behaviour in extra orchestration.
        """
        callbacks: dict[str, LifecycleFunc] = {
            "create": functools.partial(create, descriptor),
            "read": functools.partial(read, descriptor),
            "update": functools.partial(update, descriptor),
            "delete": functools.partial(delete, descriptor),
        }
        unknown = set(overrides) - set(callbacks)
        if unknown:
            raise ValueError(f"Unknown lifecycle callbacks: {sorted(unknown)}")
        callbacks.update(overrides)
        return cls(
            kind=descriptor.kind,
            schema=schema,
            timeouts=timeouts or Timeouts(),
            description=description,
            descriptor=descriptor,
            **callbacks,
        )

    def new_data(
        self,
        *,
        resource_id: str = "",
        config: Mapping[str, Any] | None = None,
        state: Mapping[str, Any] | None = None,
    ) -> ResourceData:
        """Declaration handle for an instance of this kind."""
        return ResourceData(
            self.schema,
            resource_id=resource_id,
            config=config,
            state=state,
            timeouts=self.timeouts,
        )
