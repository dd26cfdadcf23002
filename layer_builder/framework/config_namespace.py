"""Strict configuration reader with consumed-keys enforcement."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

_MISSING = object()


def _join_path(parent: str, key: str) -> str:
    if not parent:
        return key
    return f"{parent}.{key}"


@dataclass
class ConfigNamespace:
    """Reads one mapping of the config; `assert_consumed` rejects keys nobody read."""

    data: Mapping[str, Any]
    path: str
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _children: dict[str, "ConfigNamespace"] = field(default_factory=dict, init=False, repr=False)

    def consumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._consumed))

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(str(k) for k in self.data.keys() if k not in self._consumed))

    def assert_consumed(self) -> None:
        unknown = list(self.unconsumed_keys())
        if unknown:
            consumed = ", ".join(self.consumed_keys()) or "<none>"
            raise ValueError(
                f"Unknown config keys under {self.path or '<root>'}: {', '.join(unknown)} "
                f"(consumed: {consumed})"
            )
        for child in self._children.values():
            child.assert_consumed()

    def _key_path(self, key: str) -> str:
        return _join_path(self.path, key.strip())

    def _get_raw(self, key: str, *, default: Any) -> Any:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigNamespace key must be a non-empty string")
        normalized = key.strip()
        if normalized in self._children:
            raise ValueError(f"{self._key_path(normalized)} already accessed as a nested namespace")

        self._consumed.add(normalized)
        if normalized not in self.data or self.data.get(normalized) is None:
            if default is _MISSING:
                raise ValueError(f"Missing required config key: {self._key_path(normalized)}")
            return default
        return self.data.get(normalized)

    def namespace(self, key: str, *, required: bool = False) -> "ConfigNamespace":
        normalized = (key or "").strip()
        if not normalized:
            raise TypeError("ConfigNamespace key must be a non-empty string")
        if normalized in self._children:
            return self._children[normalized]

        raw = self.data.get(normalized)
        self._consumed.add(normalized)
        if raw is None:
            if required:
                raise ValueError(f"Missing required config namespace: {self._key_path(normalized)}")
            raw = {}
        if not isinstance(raw, Mapping):
            raise TypeError(
                f"{self._key_path(normalized)} must be a mapping (type={type(raw).__name__})"
            )

        child = ConfigNamespace(dict(raw), path=_join_path(self.path, normalized))
        self._children[normalized] = child
        return child

    def get_int(
        self,
        key: str,
        *,
        default: int | object = _MISSING,
        min_value: int | None = None,
    ) -> int:
        value = self._get_raw(key, default=default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{self._key_path(key)} must be an int (type={type(value).__name__})")
        if min_value is not None and value < min_value:
            raise ValueError(f"{self._key_path(key)} must be >= {min_value} (got {value})")
        return value

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        allow_empty: bool = False,
    ) -> str | None:
        raw = self._get_raw(key, default=default)
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise TypeError(f"{self._key_path(key)} must be a string (type={type(raw).__name__})")
        value = raw.strip()
        if not value and not allow_empty:
            raise ValueError(f"{self._key_path(key)} cannot be empty")
        return value

    def get_token(self, key: str, *, default: str | object = _MISSING) -> str:
        """Read a string or integer value as a string (e.g. an unquoted YAML version)."""

        raw = self._get_raw(key, default=default)
        if isinstance(raw, int) and not isinstance(raw, bool):
            return str(raw)
        if not isinstance(raw, str):
            raise TypeError(
                f"{self._key_path(key)} must be a string or int (type={type(raw).__name__})"
            )
        return raw.strip()

    def get_list_str(
        self,
        key: str,
        *,
        default: list[str] | tuple[str, ...] | object = _MISSING,
    ) -> list[str]:
        raw = self._get_raw(key, default=default)
        if isinstance(raw, str) or not isinstance(raw, (list, tuple)):
            raise TypeError(f"{self._key_path(key)} must be a list[str] (type={type(raw).__name__})")

        items: list[str] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, str):
                raise TypeError(
                    f"{self._key_path(key)}[{idx}] must be a string (type={type(item).__name__})"
                )
            trimmed = item.strip()
            if not trimmed:
                raise ValueError(f"{self._key_path(key)}[{idx}] cannot be empty")
            items.append(trimmed)
        return items

    def get_list_mapping(
        self,
        key: str,
        *,
        default: list[Mapping[str, Any]] | object = _MISSING,
    ) -> list["ConfigNamespace"]:
        """Parse a list of mappings; each item becomes its own child namespace."""

        raw = self._get_raw(key, default=default)
        if not isinstance(raw, (list, tuple)):
            raise TypeError(f"{self._key_path(key)} must be a list[dict] (type={type(raw).__name__})")

        items: list[ConfigNamespace] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, Mapping):
                raise TypeError(
                    f"{self._key_path(key)}[{idx}] must be a mapping (type={type(item).__name__})"
                )
            child = ConfigNamespace(dict(item), path=f"{self._key_path(key)}[{idx}]")
            self._children[f"{key.strip()}[{idx}]"] = child
            items.append(child)
        return items
