"""Contract of the API-client collaborator.

The authenticated client itself is supplied by the caller. This module only
describes what the reconciliation core consumes from it: the snapshot types
returned by the API, the option structs sent to it, and the call signatures.

Option structs use None for "not sent". Update requests are partial patches,
so a None field leaves the remote value alone.

Error contract: a missing resource raises
azure.core.exceptions.ResourceNotFoundError (or an HttpResponseError with
status 404); every other failure raises an HttpResponseError or another
AzureError.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


def label(value: Any) -> str:
    """Plain string form of an enum member or status string."""
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


class CloudIPStatus(str, Enum):
    """Cloud IP mapping states."""

    MAPPED = "mapped"
    UNMAPPED = "unmapped"


class CloudIPMode(str, Enum):
    """Cloud IP translation modes."""

    NAT = "nat"
    ROUTE = "route"


class TransportProtocol(str, Enum):
    """Protocols a port translator can rewrite."""

    TCP = "tcp"
    UDP = "udp"


class PermissionsGroup(str, Enum):
    """Permissions granted to an API client."""

    FULL = "full"
    STORAGE = "storage"


@dataclass(frozen=True)
class Ref:
    """Reference to another remote object, by identifier."""

    id: str


@dataclass(frozen=True)
class PortTranslator:
    """Incoming port on the Cloud IP rewritten to an outgoing port."""

    incoming: int
    outgoing: int
    protocol: TransportProtocol


@dataclass
class CloudIP:
    """Remote snapshot of a Cloud IP."""

    id: str
    status: CloudIPStatus
    name: str = ""
    mode: CloudIPMode | None = None
    public_ip: str = ""
    public_ipv4: str = ""
    public_ipv6: str = ""
    reverse_dns: str = ""
    fqdn: str = ""
    port_translators: list[PortTranslator] = field(default_factory=list)
    # Mapping target: at most one is expected to be populated, except that
    # a server mapping also reports the interface it landed on.
    server: Ref | None = None
    interface: Ref | None = None
    load_balancer: Ref | None = None
    database_server: Ref | None = None
    server_group: Ref | None = None


@dataclass
class CloudIPOptions:
    """Create/update request for a Cloud IP."""

    id: str | None = None
    name: str | None = None
    mode: CloudIPMode | None = None
    reverse_dns: str | None = None
    port_translators: list[PortTranslator] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Only the fields that will be sent."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class CloudIPAttachment:
    """Target of a Cloud IP map request."""

    destination: str


@dataclass
class APIClient:
    """Remote snapshot of an API client."""

    id: str
    name: str = ""
    description: str = ""
    permissions_group: PermissionsGroup = PermissionsGroup.FULL
    account: Ref | None = None
    # Only returned once, in the response to a create
    secret: str = field(default="", repr=False)
    revoked_at: datetime | None = None


@dataclass
class APIClientOptions:
    """Create/update request for an API client."""

    id: str | None = None
    name: str | None = None
    description: str | None = None
    permissions_group: PermissionsGroup | None = None

    def to_dict(self) -> dict[str, Any]:
        """Only the fields that will be sent."""
        return {key: value for key, value in asdict(self).items() if value is not None}


class BrightboxAPI(Protocol):
    """Calls consumed from the authenticated API client."""

    def cloud_ip(self, identifier: str) -> CloudIP: ...

    def create_cloud_ip(self, options: CloudIPOptions) -> CloudIP: ...

    def update_cloud_ip(self, options: CloudIPOptions) -> CloudIP: ...

    def destroy_cloud_ip(self, identifier: str) -> None: ...

    def map_cloud_ip(self, identifier: str, attachment: CloudIPAttachment) -> CloudIP: ...

    def unmap_cloud_ip(self, identifier: str) -> CloudIP: ...

    def api_client(self, identifier: str) -> APIClient: ...

    def create_api_client(self, options: APIClientOptions) -> APIClient: ...

    def update_api_client(self, options: APIClientOptions) -> APIClient: ...

    def destroy_api_client(self, identifier: str) -> None: ...
