"""Declaration file loading with validation.

A declaration file lists resources by kind and local name:

    resources:
      - kind: cloud_ip
        name: web
        spec:
          name: web-ip
          target: srv-abc12

SECURITY: File reads enforce a size limit and YAML is parsed with
safe_load only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import BaseDeclaration, get_declaration_class

logger = logging.getLogger(__name__)

MAX_DECLARATION_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max declaration file


class SpecLoadError(Exception):
    """Raised when declaration loading or validation fails."""

    pass


@dataclass(frozen=True)
class ResourceDeclaration:
    """A validated declaration of one resource instance."""

    kind: str
    name: str
    spec: BaseDeclaration

    def to_config(self) -> dict[str, Any]:
        return self.spec.to_config()


def _format_validation_error(error: ValidationError, prefix: str) -> list[str]:
    errors = []
    for detail in error.errors():
        loc = ".".join(str(x) for x in detail["loc"])
        errors.append(f"  - {prefix}.{loc}: {detail['msg']}" if loc else f"  - {prefix}: {detail['msg']}")
    return errors


def parse_declarations(raw_data: Any, source: str = "<input>") -> list[ResourceDeclaration]:
    """Validate already-parsed declaration data.

    Every invalid entry is reported, not just the first one.

    Raises:
        SpecLoadError: If the structure or any declaration is invalid.
    """
    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Declaration file must contain a YAML mapping: {source}")

    entries = raw_data.get("resources")
    if not isinstance(entries, list):
        raise SpecLoadError(f"'resources' must be a list: {source}")

    declarations: list[ResourceDeclaration] = []
    errors: list[str] = []
    seen: set[tuple[str, str]] = set()

    for index, entry in enumerate(entries):
        prefix = f"resources.{index}"
        if not isinstance(entry, dict):
            errors.append(f"  - {prefix}: must be a mapping")
            continue

        kind = entry.get("kind")
        name = entry.get("name")
        if not isinstance(kind, str) or not isinstance(name, str) or not name:
            errors.append(f"  - {prefix}: 'kind' and 'name' are required strings")
            continue

        if (kind, name) in seen:
            errors.append(f"  - {prefix}: duplicate declaration {kind}.{name}")
            continue
        seen.add((kind, name))

        try:
            declaration_class = get_declaration_class(kind)
        except ValueError as e:
            errors.append(f"  - {prefix}.kind: {e}")
            continue

        spec_data = entry.get("spec") or {}
        if not isinstance(spec_data, dict):
            errors.append(f"  - {prefix}.spec: must be a mapping")
            continue

        try:
            spec = declaration_class.model_validate(spec_data)
        except ValidationError as e:
            errors.extend(_format_validation_error(e, f"{prefix}.spec"))
            continue

        declarations.append(ResourceDeclaration(kind=kind, name=name, spec=spec))

    if errors:
        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}")

    return declarations


def load_declarations(path: Path) -> list[ResourceDeclaration]:
    """Load and validate a declaration file.

    Args:
        path: YAML file to read.

    Returns:
        Validated declarations in file order.

    Raises:
        SpecLoadError: If the file cannot be read or fails validation.
    """
    if not path.exists():
        raise SpecLoadError(f"Declaration file not found: {path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat declaration file {path}: {e}") from e

    if file_size > MAX_DECLARATION_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Declaration file exceeds maximum size of "
            f"{MAX_DECLARATION_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read declaration file {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    declarations = parse_declarations(raw_data, str(path))
    logger.info("Loaded %d declarations from %s", len(declarations), path)
    return declarations
