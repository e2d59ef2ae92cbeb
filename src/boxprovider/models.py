"""Pydantic models for resource declarations with validation.

These models provide:
1. Type-safe YAML parsing
2. Validation at the boundary (fail fast, fail loudly)
3. Clean transformation to ResourceData config values
"""

from __future__ import annotations

import re
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

from .api import CloudIPMode, PermissionsGroup, TransportProtocol

# =============================================================================
# Identifier patterns
# =============================================================================

SERVER_ID_PATTERN = r"^srv-[0-9a-z]+$"
INTERFACE_ID_PATTERN = r"^int-[0-9a-z]+$"
LOAD_BALANCER_ID_PATTERN = r"^lba-[0-9a-z]+$"
DATABASE_SERVER_ID_PATTERN = r"^dbs-[0-9a-z]+$"
SERVER_GROUP_ID_PATTERN = r"^grp-[0-9a-z]+$"

TARGET_ID_PATTERNS: dict[str, str] = {
    "server": SERVER_ID_PATTERN,
    "interface": INTERFACE_ID_PATTERN,
    "load balancer": LOAD_BALANCER_ID_PATTERN,
    "database server": DATABASE_SERVER_ID_PATTERN,
    "server group": SERVER_GROUP_ID_PATTERN,
}

DNS_NAME_PATTERN = (
    r"^(([a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9\-]*[a-zA-Z0-9])\.)*"
    r"([A-Za-z0-9]|[A-Za-z0-9][A-Za-z0-9\-]*[A-Za-z0-9])$"
)

PortNumber = Annotated[int, Field(ge=1, le=65535)]


def is_valid_target(value: str) -> bool:
    """Check that a mapping target is the ID of a mappable object."""
    return any(re.match(pattern, value) for pattern in TARGET_ID_PATTERNS.values())


class BaseDeclaration(BaseModel):
    """Base declaration with common behaviour."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    def to_config(self) -> dict[str, Any]:
        """Declared values only, keyed by attribute name."""
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# Cloud IP
# =============================================================================


class PortTranslatorConfig(BaseModel):
    """Port translation rule on a Cloud IP."""

    model_config = {"extra": "ignore"}

    incoming: PortNumber
    outgoing: PortNumber
    protocol: str

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        valid = {p.value for p in TransportProtocol}
        if v not in valid:
            raise ValueError(f"protocol must be one of {sorted(valid)}")
        return v


class CloudIPDeclaration(BaseDeclaration):
    """Declared state of a Cloud IP."""

    name: str | None = None
    mode: str | None = None
    reverse_dns: str | None = Field(None, alias="reverseDns")
    port_translator: list[PortTranslatorConfig] | None = Field(None, alias="portTranslators")
    target: str | None = None

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str | None) -> str | None:
        valid = {m.value for m in CloudIPMode}
        if v is not None and v not in valid:
            raise ValueError(f"mode must be one of {sorted(valid)}")
        return v

    @field_validator("reverse_dns")
    @classmethod
    def validate_reverse_dns(cls, v: str | None) -> str | None:
        if v is not None and not re.match(DNS_NAME_PATTERN, v):
            raise ValueError("reverse_dns must be a valid DNS name")
        return v

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str | None) -> str | None:
        if v is not None and v != "" and not is_valid_target(v):
            kinds = ", ".join(TARGET_ID_PATTERNS)
            raise ValueError(f"target must be the ID of a {kinds}")
        return v

    @field_validator("port_translator")
    @classmethod
    def validate_unique_translators(
        cls, v: list[PortTranslatorConfig] | None
    ) -> list[PortTranslatorConfig] | None:
        if v is None:
            return v
        seen: set[tuple[int, str]] = set()
        for translator in v:
            key = (translator.incoming, translator.protocol)
            if key in seen:
                raise ValueError(
                    f"duplicate port translator for incoming {translator.protocol} "
                    f"port {translator.incoming}"
                )
            seen.add(key)
        return v


# =============================================================================
# API Client
# =============================================================================


class APIClientDeclaration(BaseDeclaration):
    """Declared state of an API client."""

    name: str | None = None
    description: str | None = None
    permissions_group: str | None = Field(None, alias="permissionsGroup")

    @field_validator("permissions_group")
    @classmethod
    def validate_permissions_group(cls, v: str | None) -> str | None:
        valid = {g.value for g in PermissionsGroup}
        if v is not None and v not in valid:
            raise ValueError(f"permissions_group must be one of {sorted(valid)}")
        return v


# =============================================================================
# Declaration Registry
# =============================================================================


DECLARATION_CLASSES: dict[str, type[BaseDeclaration]] = {
    "cloud_ip": CloudIPDeclaration,
    "api_client": APIClientDeclaration,
}


def get_declaration_class(kind: str) -> type[BaseDeclaration]:
    """Get the declaration model for a resource kind.

    Raises:
        ValueError: If the kind is not recognized.
    """
    declaration_class = DECLARATION_CLASSES.get(kind)
    if declaration_class is None:
        raise ValueError(f"Unknown resource kind '{kind}'. Valid kinds: {list(DECLARATION_CLASSES)}")
    return declaration_class
