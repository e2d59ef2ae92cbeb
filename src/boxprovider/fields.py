"""Typed attribute access over a resource's declared and remote state.

ResourceData is the declaration handle passed to every lifecycle call. It
keeps three layers:

- state: the last-known remote snapshot (persisted by the host runtime)
- config: the values the user declared
- written: values set during the current call (API results)

Reads see written > config > state. Change detection compares config with
state only, so option structs carry exactly what the user changed.
"""

from __future__ import annotations

import json
import zlib
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from .config import Operation, Timeouts
from .diagnostics import Diagnostics
from .errors import FieldValidationError


class FieldKind(str, Enum):
    """Supported attribute shapes."""

    STRING = "string"
    ENUM = "enum"
    INT = "int"
    SET = "set"


def hashcode_string(value: str) -> int:
    """Stable non-negative hash of a string (CRC-32)."""
    return zlib.crc32(value.encode("utf-8"))


def _default_record_hash(record: Mapping[str, Any]) -> int:
    return hashcode_string(json.dumps(record, sort_keys=True, default=str))


class RecordSet:
    """A set of structured sub-records addressed by content hash.

    Two RecordSets are equal when they hold the same hashes, whatever
    order the records were supplied in.
    """

    def __init__(
        self,
        records: Iterable[Mapping[str, Any]] = (),
        hash_func: Callable[[Mapping[str, Any]], int] | None = None,
    ) -> None:
        self._hash = hash_func or _default_record_hash
        self._items: dict[int, dict[str, Any]] = {}
        for record in records:
            self.add(record)

    def add(self, record: Mapping[str, Any]) -> int:
        code = self._hash(record)
        self._items[code] = dict(record)
        return code

    def hashes(self) -> frozenset[int]:
        return frozenset(self._items)

    def get(self, code: int) -> dict[str, Any] | None:
        return self._items.get(code)

    def as_list(self) -> list[dict[str, Any]]:
        """Records ordered by hash."""
        return [dict(self._items[code]) for code in sorted(self._items)]

    def __contains__(self, record: object) -> bool:
        if not isinstance(record, Mapping):
            return False
        return self._hash(record) in self._items

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self.as_list())

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordSet):
            return NotImplemented
        return self.hashes() == other.hashes()

    def __repr__(self) -> str:
        return f"RecordSet({self.as_list()!r})"


@dataclass(frozen=True)
class Attribute:
    """Declaration of one resource attribute."""

    kind: FieldKind
    description: str = ""
    optional: bool = False
    required: bool = False
    computed: bool = False
    sensitive: bool = False
    deprecated: str | None = None
    default: Any = None
    # ENUM: permitted canonical values
    choices: tuple[str, ...] = ()
    # SET: pydantic model validating each sub-record, and its hash
    element: type[BaseModel] | None = None
    hash_func: Callable[[Mapping[str, Any]], int] | None = None

    def zero(self) -> Any:
        """Value reported for an attribute that was never set."""
        match self.kind:
            case FieldKind.INT:
                return 0
            case FieldKind.SET:
                return RecordSet(hash_func=self.hash_func)
            case _:
                return ""

    def coerce(self, name: str, value: Any) -> Any:
        """Validate a value and convert it to its stored form.

        Raises:
            FieldValidationError: If the value does not fit the attribute.
        """
        if value is None:
            return self.zero()

        match self.kind:
            case FieldKind.STRING:
                if not isinstance(value, str):
                    raise FieldValidationError(
                        name, f"expected string, got {type(value).__name__}"
                    )
                return value

            case FieldKind.ENUM:
                if isinstance(value, Enum):
                    value = value.value
                if not isinstance(value, str):
                    raise FieldValidationError(
                        name, f"expected string, got {type(value).__name__}"
                    )
                if value and value not in self.choices:
                    raise FieldValidationError(
                        name, f"expected one of {list(self.choices)}, got '{value}'"
                    )
                return value

            case FieldKind.INT:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise FieldValidationError(name, f"expected int, got {type(value).__name__}")
                return value

            case FieldKind.SET:
                return self._coerce_set(name, value)

        raise FieldValidationError(name, f"unsupported attribute kind {self.kind}")

    def _coerce_set(self, name: str, value: Any) -> RecordSet:
        if isinstance(value, RecordSet):
            return RecordSet(value.as_list(), self.hash_func)
        if isinstance(value, (str, bytes, Mapping)) or not isinstance(value, Iterable):
            raise FieldValidationError(name, f"expected a set of records, got {type(value).__name__}")

        records: list[dict[str, Any]] = []
        for index, item in enumerate(value):
            if isinstance(item, BaseModel):
                item = item.model_dump()
            if not isinstance(item, Mapping):
                raise FieldValidationError(
                    f"{name}.{index}", f"expected a record, got {type(item).__name__}"
                )
            if self.element is not None:
                try:
                    item = self.element.model_validate(dict(item)).model_dump()
                except ValidationError as e:
                    problems = "; ".join(
                        f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
                    )
                    raise FieldValidationError(f"{name}.{index}", problems) from e
            records.append(dict(item))
        return RecordSet(records, self.hash_func)


Schema = Mapping[str, Attribute]


class ResourceData:
    """Declaration handle for a single resource instance."""

    def __init__(
        self,
        schema: Schema,
        *,
        resource_id: str = "",
        config: Mapping[str, Any] | None = None,
        state: Mapping[str, Any] | None = None,
        timeouts: Timeouts | None = None,
    ) -> None:
        """Create a handle.

        Args:
            schema: Attribute declarations for the resource kind.
            resource_id: Remote identifier, empty if not yet created.
            config: Declared values. Absent keys are "not declared".
            state: Prior attribute snapshot.
            timeouts: Per-operation timeouts. Defaults apply if omitted.

        Raises:
            FieldValidationError: If a declared or prior value does not fit
                the schema.
        """
        self._schema = schema
        self._id = resource_id
        self._timeouts = timeouts or Timeouts()
        self._state = self._normalize(state or {})
        self._config = self._normalize(config or {})
        self._written: dict[str, Any] = {}

    def _normalize(self, values: Mapping[str, Any]) -> dict[str, Any]:
        normalized: dict[str, Any] = {}
        for name, value in values.items():
            normalized[name] = self._attribute(name).coerce(name, value)
        return normalized

    def _attribute(self, name: str) -> Attribute:
        try:
            return self._schema[name]
        except KeyError:
            raise FieldValidationError(name, "unknown attribute") from None

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, resource_id: str) -> None:
        """Assign the remote identifier. An empty string marks the resource absent."""
        self._id = resource_id

    def timeout(self, operation: Operation | str) -> float:
        return self._timeouts.for_operation(Operation(operation))

    def get(self, name: str) -> Any:
        attribute = self._attribute(name)
        for layer in (self._written, self._config, self._state):
            if name in layer:
                return layer[name]
        if attribute.default is not None:
            return attribute.coerce(name, attribute.default)
        return attribute.zero()

    def get_ok(self, name: str) -> tuple[Any, bool]:
        """Return the value and whether it is set to something non-zero."""
        value = self.get(name)
        return value, value != self._attribute(name).zero()

    def get_change(self, name: str) -> tuple[Any, Any]:
        """Return (prior value, declared value) for an attribute."""
        attribute = self._attribute(name)
        old = self._state.get(name, attribute.zero())
        if name in self._config:
            new = self._config[name]
        elif attribute.computed:
            new = old
        elif attribute.default is not None:
            new = attribute.coerce(name, attribute.default)
        else:
            new = attribute.zero()
        return old, new

    def has_change(self, name: str) -> bool:
        old, new = self.get_change(name)
        return old != new

    def set(self, name: str, value: Any) -> None:
        """Write an attribute value.

        Raises:
            FieldValidationError: If the value fails the type check. The
                stored value is left untouched.
        """
        self._written[name] = self._attribute(name).coerce(name, value)

    def snapshot(self) -> dict[str, Any]:
        """Current attribute values, for the host runtime to persist."""
        values = {**self._state, **self._written}
        return {
            name: value.as_list() if isinstance(value, RecordSet) else value
            for name, value in values.items()
        }


def set_attributes(data: ResourceData, values: Mapping[str, Any]) -> Diagnostics:
    """Write several attributes, collecting one diagnostic per failed field.

    A failed field never stops the remaining fields from being written.
    """
    diags = Diagnostics()
    for name, value in values.items():
        try:
            data.set(name, value)
        except FieldValidationError as e:
            diags.add_error(e, f"unexpected: {e.message}")
    return diags


# =============================================================================
# Option builders
# =============================================================================
# Each helper copies a declared value onto an option struct only when the
# declaration changed it. The declared side is sent, never a remote value
# written during the current call. Untouched option fields stay None
# ("not sent").


def assign_string(data: ResourceData, opts: Any, name: str, option: str | None = None) -> None:
    old, new = data.get_change(name)
    if old != new:
        setattr(opts, option or name, new)


def assign_int(data: ResourceData, opts: Any, name: str, option: str | None = None) -> None:
    old, new = data.get_change(name)
    if old != new:
        setattr(opts, option or name, new)


def assign_enum(
    data: ResourceData,
    opts: Any,
    name: str,
    enum_type: type[Enum],
    option: str | None = None,
) -> None:
    old, new = data.get_change(name)
    if old != new:
        setattr(opts, option or name, enum_type(new) if new else None)


def assign_set(
    data: ResourceData,
    opts: Any,
    name: str,
    expand: Callable[[list[dict[str, Any]]], Any],
    option: str | None = None,
) -> None:
    old, new = data.get_change(name)
    if old != new:
        setattr(opts, option or name, expand(new.as_list()))
