"""API client resource, built entirely from the generic lifecycle."""

from __future__ import annotations

from .api import APIClient, APIClientOptions, PermissionsGroup
from .config import Config
from .diagnostics import Diagnostics
from .fields import Attribute, FieldKind, ResourceData, assign_enum, assign_string, set_attributes
from .lifecycle import Resource, ResourceDescriptor

KIND = "API client"

SCHEMA: dict[str, Attribute] = {
    "account": Attribute(
        FieldKind.STRING, "The account the API client relates to", computed=True
    ),
    "description": Attribute(
        FieldKind.STRING, "Verbose Description of this client", optional=True
    ),
    "name": Attribute(FieldKind.STRING, "Human Readable Name", optional=True),
    "permissions_group": Attribute(
        FieldKind.ENUM,
        "Summary of the permissions granted to the client (full, storage)",
        optional=True,
        default=PermissionsGroup.FULL.value,
        choices=tuple(g.value for g in PermissionsGroup),
    ),
    "secret": Attribute(
        FieldKind.STRING,
        "A shared secret the client must present when authenticating",
        computed=True,
        sensitive=True,
    ),
}


def api_client_from_id(identifier: str | None) -> APIClientOptions:
    return APIClientOptions(id=identifier)


def add_updateable_api_client_options(
    data: ResourceData, opts: APIClientOptions
) -> Diagnostics:
    assign_string(data, opts, "name")
    assign_string(data, opts, "description")
    assign_enum(data, opts, "permissions_group", PermissionsGroup)
    return Diagnostics()


def set_api_client_attributes(data: ResourceData, api_client: APIClient) -> Diagnostics:
    values = {
        "name": api_client.name,
        "description": api_client.description,
        "permissions_group": api_client.permissions_group,
        "account": api_client.account.id if api_client.account else "",
    }
    # The secret is only returned on create; keep the stored one otherwise
    if api_client.secret:
        values["secret"] = api_client.secret
    return set_attributes(data, values)


def is_revoked(api_client: APIClient) -> bool:
    return api_client.revoked_at is not None


DESCRIPTOR: ResourceDescriptor[APIClient, APIClientOptions] = ResourceDescriptor(
    kind=KIND,
    create=lambda client, opts: client.create_api_client(opts),
    read=lambda client, identifier: client.api_client(identifier),
    update=lambda client, opts: client.update_api_client(opts),
    delete=lambda client, identifier: client.destroy_api_client(identifier),
    options_from_id=api_client_from_id,
    build_options=add_updateable_api_client_options,
    set_attributes=set_api_client_attributes,
    is_absent=is_revoked,
)


def api_client_resource(config: Config | None = None) -> Resource:
    """The API client resource, with timeouts from config."""
    config = config or Config()
    return Resource.generic(
        DESCRIPTOR,
        SCHEMA,
        timeouts=config.timeouts,
        description="Provides a Brightbox API Client resource",
    )
