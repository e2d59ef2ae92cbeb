"""Cloud IP resource: generic lifecycle plus map/unmap orchestration.

A Cloud IP is mapped to at most one target (server, interface, load
balancer, database server or server group). The mapping is changed through
separate map/unmap calls whose effect becomes visible asynchronously, so
every change is followed by a status wait:

    map request    -> wait unmapped -> mapped
    unmap request  -> wait mapped   -> unmapped

Create maps after the Cloud IP exists. Update unmaps from the previous
target before mapping to the new one. Delete unmaps first and refuses to
delete a Cloud IP it could not unmap.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping
from typing import Any

from .api import (
    BrightboxAPI,
    CloudIP,
    CloudIPAttachment,
    CloudIPMode,
    CloudIPOptions,
    CloudIPStatus,
    PortTranslator,
    TransportProtocol,
    label,
)
from .config import Config, Operation
from .diagnostics import Diagnostics
from .errors import ProviderError
from .fields import (
    Attribute,
    FieldKind,
    ResourceData,
    assign_enum,
    assign_set,
    assign_string,
    hashcode_string,
    set_attributes,
)
from .lifecycle import Resource, ResourceDescriptor, call_api, create, delete, update
from .models import PortTranslatorConfig
from .waiter import wait_for_state

logger = logging.getLogger(__name__)

KIND = "Cloud IP"


def port_translator_hash(record: Mapping[str, Any]) -> int:
    """Content hash of a port translator: incoming, protocol, outgoing."""
    protocol = str(record["protocol"]).lower()
    return hashcode_string(f"{record['incoming']}-{protocol}-{record['outgoing']}-")


SCHEMA: dict[str, Attribute] = {
    "fqdn": Attribute(
        FieldKind.STRING, "Full Domain name entry for the Cloud IP", computed=True
    ),
    "locked": Attribute(
        FieldKind.STRING,
        "No lock on Cloud IPs",
        computed=True,
        deprecated="No lock on Cloud IPs",
    ),
    "mode": Attribute(
        FieldKind.ENUM,
        "Type of Cloud IP required (nat/route)",
        optional=True,
        choices=tuple(m.value for m in CloudIPMode),
    ),
    "name": Attribute(FieldKind.STRING, "Name assigned to the Cloud IP", optional=True),
    "port_translator": Attribute(
        FieldKind.SET,
        "Array of Port Translators",
        optional=True,
        element=PortTranslatorConfig,
        hash_func=port_translator_hash,
    ),
    "public_ip": Attribute(FieldKind.STRING, "Old alias of the IPv4 address", computed=True),
    "public_ipv4": Attribute(FieldKind.STRING, "IPv4 address", computed=True),
    "public_ipv6": Attribute(FieldKind.STRING, "IPv6 address", computed=True),
    "reverse_dns": Attribute(
        FieldKind.STRING, "Reverse DNS entry for the Cloud IP", optional=True, computed=True
    ),
    "status": Attribute(FieldKind.STRING, "Current state of the Cloud IP", computed=True),
    "target": Attribute(FieldKind.STRING, "The object this Cloud IP maps to", optional=True),
}


def cloud_ip_from_id(identifier: str | None) -> CloudIPOptions:
    return CloudIPOptions(id=identifier)


def expand_port_translators(configured: list[dict[str, Any]]) -> list[PortTranslator]:
    return [
        PortTranslator(
            incoming=int(item["incoming"]),
            outgoing=int(item["outgoing"]),
            protocol=TransportProtocol(item["protocol"]),
        )
        for item in configured
    ]


def add_updateable_cloud_ip_options(data: ResourceData, opts: CloudIPOptions) -> Diagnostics:
    assign_enum(data, opts, "mode", CloudIPMode)
    assign_string(data, opts, "name")
    assign_string(data, opts, "reverse_dns")
    assign_set(data, opts, "port_translator", expand_port_translators, option="port_translators")
    return Diagnostics()


def mapped_target(cloud_ip: CloudIP) -> str | None:
    """The identifier the Cloud IP is mapped to, if any.

    Alternatives are checked in a fixed order and the last populated one
    wins. A server mapping also reports its interface, so the interface
    takes precedence over the server.
    """
    target = None
    for ref in (
        cloud_ip.server,
        cloud_ip.interface,
        cloud_ip.load_balancer,
        cloud_ip.database_server,
        cloud_ip.server_group,
    ):
        if ref is not None:
            target = ref.id
    return target


def set_cloud_ip_attributes(data: ResourceData, cloud_ip: CloudIP) -> Diagnostics:
    data.set_id(cloud_ip.id)
    values: dict[str, Any] = {
        "name": cloud_ip.name,
        "public_ip": cloud_ip.public_ip,
        "public_ipv4": cloud_ip.public_ipv4,
        "public_ipv6": cloud_ip.public_ipv6,
        "status": label(cloud_ip.status),
        "reverse_dns": cloud_ip.reverse_dns,
        "fqdn": cloud_ip.fqdn,
        "mode": cloud_ip.mode,
        # Unmapped Cloud IPs report no target at all
        "target": mapped_target(cloud_ip) or "",
    }

    logger.debug(
        "PortTranslator details",
        extra={"resource_id": cloud_ip.id, "port_translators": repr(cloud_ip.port_translators)},
    )
    values["port_translator"] = [
        {
            "incoming": translator.incoming,
            "outgoing": translator.outgoing,
            "protocol": label(translator.protocol),
        }
        for translator in cloud_ip.port_translators
    ]
    return set_attributes(data, values)


DESCRIPTOR: ResourceDescriptor[CloudIP, CloudIPOptions] = ResourceDescriptor(
    kind=KIND,
    create=lambda client, opts: client.create_cloud_ip(opts),
    read=lambda client, identifier: client.cloud_ip(identifier),
    update=lambda client, opts: client.update_cloud_ip(opts),
    delete=lambda client, identifier: client.destroy_cloud_ip(identifier),
    options_from_id=cloud_ip_from_id,
    build_options=add_updateable_cloud_ip_options,
    set_attributes=set_cloud_ip_attributes,
)


# =============================================================================
# Mapping orchestration
# =============================================================================


async def wait_for_cloud_ip(
    client: BrightboxAPI,
    cloud_ip_id: str,
    *,
    pending: CloudIPStatus,
    target: CloudIPStatus,
    timeout: float,
    config: Config,
) -> CloudIP:
    """Block until the Cloud IP reports the target status."""

    async def refresh() -> tuple[CloudIP, str]:
        cloud_ip = await call_api(
            KIND,
            "retrieving",
            client.cloud_ip,
            cloud_ip_id,
            resource_id=cloud_ip_id,
            timeout=timeout,
        )
        return cloud_ip, label(cloud_ip.status)

    return await wait_for_state(
        refresh,
        pending=pending.value,
        target=target.value,
        timeout=timeout,
        min_interval=config.minimum_refresh_wait_seconds,
        max_interval=config.maximum_refresh_wait_seconds,
        label=f"{KIND} {cloud_ip_id} {target.value}",
    )


async def assured_map_cloud_ip(
    client: BrightboxAPI,
    cloud_ip_id: str,
    target_id: str,
    *,
    timeout: float,
    config: Config,
) -> CloudIP:
    """Map a Cloud IP and wait until the mapping is active."""
    await call_api(
        KIND,
        "mapping",
        client.map_cloud_ip,
        cloud_ip_id,
        CloudIPAttachment(destination=target_id),
        resource_id=cloud_ip_id,
        timeout=timeout,
    )
    return await wait_for_cloud_ip(
        client,
        cloud_ip_id,
        pending=CloudIPStatus.UNMAPPED,
        target=CloudIPStatus.MAPPED,
        timeout=timeout,
        config=config,
    )


async def assured_unmap_cloud_ip(
    client: BrightboxAPI,
    cloud_ip_id: str,
    *,
    timeout: float,
    config: Config,
) -> CloudIP:
    """Unmap a Cloud IP and wait until the mapping is gone."""
    await call_api(
        KIND,
        "unmapping",
        client.unmap_cloud_ip,
        cloud_ip_id,
        resource_id=cloud_ip_id,
        timeout=timeout,
    )
    return await wait_for_cloud_ip(
        client,
        cloud_ip_id,
        pending=CloudIPStatus.MAPPED,
        target=CloudIPStatus.UNMAPPED,
        timeout=timeout,
        config=config,
    )


async def assign_cloud_ip(
    client: BrightboxAPI, data: ResourceData, timeout: float, config: Config
) -> Diagnostics:
    """Map to the declared target, if there is one."""
    _, target_id = data.get_change("target")
    if not target_id:
        return Diagnostics()

    logger.info(
        f"Attaching {KIND}",
        extra={"resource_id": data.id, "target_id": target_id},
    )
    try:
        cloud_ip = await assured_map_cloud_ip(
            client, data.id, target_id, timeout=timeout, config=config
        )
    except ProviderError as e:
        return Diagnostics.from_error(e, f"Error assigning {KIND} {data.id} to target {target_id}")
    return set_cloud_ip_attributes(data, cloud_ip)


async def unassign_cloud_ip(
    client: BrightboxAPI, data: ResourceData, timeout: float, config: Config
) -> Diagnostics:
    """Unmap from the previous target, if there was one."""
    previous_target, _ = data.get_change("target")
    if not previous_target:
        return Diagnostics()

    logger.info(
        f"Detaching {KIND}",
        extra={"resource_id": data.id, "target_id": previous_target},
    )
    try:
        await assured_unmap_cloud_ip(client, data.id, timeout=timeout, config=config)
    except ProviderError as e:
        return Diagnostics.from_error(e, f"Error unmapping {KIND} {data.id}")
    return Diagnostics()


async def create_and_assign(
    client: BrightboxAPI, data: ResourceData, *, config: Config
) -> Diagnostics:
    diags = await create(DESCRIPTOR, client, data)
    if diags.has_error():
        return diags
    return diags + await assign_cloud_ip(client, data, data.timeout(Operation.CREATE), config)


async def update_and_remap(
    client: BrightboxAPI, data: ResourceData, *, config: Config
) -> Diagnostics:
    """Remap when the target changed, then update the other fields.

    Mapping is only attempted if unmapping succeeded. The field update runs
    whatever happened to the mapping.
    """
    diags = Diagnostics()
    if data.has_change("target"):
        logger.info(
            f"{KIND} target has changed, updating",
            extra={"resource_id": data.id},
        )
        timeout = data.timeout(Operation.UPDATE)
        diags.extend(await unassign_cloud_ip(client, data, timeout, config))
        if not diags.has_error():
            diags.extend(await assign_cloud_ip(client, data, timeout, config))
    return diags + await update(DESCRIPTOR, client, data)


async def unassign_and_delete(
    client: BrightboxAPI, data: ResourceData, *, config: Config
) -> Diagnostics:
    """Unmap, then delete. A failed unmap leaves the Cloud IP in place.

    The unmap wait is bounded by the update timeout, the delete call by the
    delete timeout.
    """
    diags = await unassign_cloud_ip(client, data, data.timeout(Operation.UPDATE), config)
    if diags.has_error():
        return diags
    return await delete(DESCRIPTOR, client, data)


def cloud_ip_resource(config: Config | None = None) -> Resource:
    """The Cloud IP resource, with intervals and timeouts from config."""
    config = config or Config()
    return Resource.generic(
        DESCRIPTOR,
        SCHEMA,
        timeouts=config.timeouts,
        description="Provides a Brightbox CloudIP resource",
        create=functools.partial(create_and_assign, config=config),
        update=functools.partial(update_and_remap, config=config),
        delete=functools.partial(unassign_and_delete, config=config),
    )
