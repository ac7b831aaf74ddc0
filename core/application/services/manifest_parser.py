"""
Manifest parser.

Turns the text of a project's fastly.toml into a ``Manifest``. Pure: no I/O,
no partial results. Any validation failure raises ``ManifestError``.
"""
from typing import Any, Optional

import tomlkit
from tomlkit.exceptions import KeyAlreadyPresent, TOMLKitError

from core.domain.entities.manifest import (
    BackendSpec,
    DictionaryItemSpec,
    DictionarySpec,
    InputKind,
    Manifest,
)
from core.domain.errors import ManifestError

DEFAULT_BACKEND_PORT = 80


class ManifestParser:
    """Parser for the ``[setup]`` block."""

    def parse(self, text: str) -> Manifest:
        try:
            document = tomlkit.parse(text).unwrap()
        except KeyAlreadyPresent as exc:
            raise ManifestError(
                ManifestError.Kind.DUPLICATE_KEY, f"fastly.toml repeats a key: {exc}"
            ) from exc
        except TOMLKitError as exc:
            raise ManifestError(
                ManifestError.Kind.INVALID_SYNTAX, f"fastly.toml is not valid TOML: {exc}"
            ) from exc

        setup = document.get("setup")
        if setup is None:
            raise ManifestError(
                ManifestError.Kind.MISSING_SETUP_SECTION,
                "fastly.toml has no [setup] section, so it cannot be deployed",
            )
        if not isinstance(setup, dict):
            raise ManifestError(
                ManifestError.Kind.MISSING_SETUP_SECTION, "[setup] must be a table"
            )

        backends = self._parse_backends(setup.get("backends", []))
        dictionaries = self._parse_dictionaries(setup.get("dictionaries", []))
        return Manifest(backends=backends, dictionaries=dictionaries)

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------

    def _parse_backends(self, raw: Any) -> tuple[BackendSpec, ...]:
        if not isinstance(raw, list):
            raise ManifestError(
                ManifestError.Kind.MALFORMED_BACKEND,
                "setup.backends must be an array of tables",
            )

        backends: list[BackendSpec] = []
        seen: set[str] = set()
        for index, entry in enumerate(raw):
            backend = self._parse_backend(index, entry)
            if backend.name in seen:
                raise ManifestError(
                    ManifestError.Kind.DUPLICATE_KEY,
                    f"Backend {backend.name!r} is declared more than once",
                )
            seen.add(backend.name)
            backends.append(backend)
        return tuple(backends)

    def _parse_backend(self, index: int, entry: Any) -> BackendSpec:
        if not isinstance(entry, dict):
            raise ManifestError(
                ManifestError.Kind.MALFORMED_BACKEND, f"Backend #{index + 1} must be a table"
            )

        address = entry.get("address")
        if not isinstance(address, str) or not address.strip():
            raise ManifestError(
                ManifestError.Kind.MALFORMED_BACKEND,
                f"Backend #{index + 1} needs a non-empty address",
            )
        address = address.strip()

        port = entry.get("port", DEFAULT_BACKEND_PORT)
        # bool is an int subclass
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise ManifestError(
                ManifestError.Kind.MALFORMED_BACKEND,
                f"Backend {address!r} has invalid port {port!r} (expected 1-65535)",
            )

        name = entry.get("name", address)
        if not isinstance(name, str) or not name.strip():
            raise ManifestError(
                ManifestError.Kind.MALFORMED_BACKEND,
                f"Backend {address!r} has an empty name",
            )

        return BackendSpec(
            name=name.strip(),
            address=address,
            port=port,
            prompt=self._optional_text(entry, "prompt", ManifestError.Kind.MALFORMED_BACKEND),
        )

    # ------------------------------------------------------------------
    # Dictionaries
    # ------------------------------------------------------------------

    def _parse_dictionaries(self, raw: Any) -> tuple[DictionarySpec, ...]:
        if not isinstance(raw, list):
            raise ManifestError(
                ManifestError.Kind.MALFORMED_DICTIONARY,
                "setup.dictionaries must be an array of tables",
            )

        dictionaries: list[DictionarySpec] = []
        seen: set[str] = set()
        for index, entry in enumerate(raw):
            dictionary = self._parse_dictionary(index, entry)
            if dictionary.name in seen:
                raise ManifestError(
                    ManifestError.Kind.DUPLICATE_KEY,
                    f"Dictionary {dictionary.name!r} is declared more than once",
                )
            seen.add(dictionary.name)
            dictionaries.append(dictionary)
        return tuple(dictionaries)

    def _parse_dictionary(self, index: int, entry: Any) -> DictionarySpec:
        kind = ManifestError.Kind.MALFORMED_DICTIONARY
        if not isinstance(entry, dict):
            raise ManifestError(kind, f"Dictionary #{index + 1} must be a table")

        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ManifestError(kind, f"Dictionary #{index + 1} needs a non-empty name")
        name = name.strip()

        raw_items = entry.get("items", [])
        if not isinstance(raw_items, list):
            raise ManifestError(kind, f"Dictionary {name!r} items must be an array of tables")

        items: list[DictionaryItemSpec] = []
        keys: set[str] = set()
        for item_entry in raw_items:
            item = self._parse_item(name, item_entry)
            if item.key in keys:
                raise ManifestError(
                    ManifestError.Kind.DUPLICATE_KEY,
                    f"Key {item.key!r} appears twice in dictionary {name!r}",
                )
            keys.add(item.key)
            items.append(item)

        return DictionarySpec(
            name=name,
            items=tuple(items),
            prompt=self._optional_text(entry, "prompt", kind),
        )

    def _parse_item(self, dictionary: str, entry: Any) -> DictionaryItemSpec:
        kind = ManifestError.Kind.MALFORMED_DICTIONARY
        if not isinstance(entry, dict):
            raise ManifestError(kind, f"Items of dictionary {dictionary!r} must be tables")

        key = entry.get("key")
        if not isinstance(key, str) or not key.strip():
            raise ManifestError(kind, f"Dictionary {dictionary!r} has an item without a key")
        key = key.strip()

        input_type = entry.get("input_type")
        try:
            input_kind = InputKind(input_type)
        except ValueError:
            allowed = ", ".join(k.value for k in InputKind)
            raise ManifestError(
                kind,
                f"Item {dictionary}.{key} has input_type {input_type!r} (expected one of: {allowed})",
            ) from None

        return DictionaryItemSpec(
            key=key,
            kind=input_kind,
            prompt=self._optional_text(entry, "prompt", kind),
            default=self._optional_text(entry, "value", kind),
        )

    @staticmethod
    def _optional_text(entry: dict, field: str, kind: ManifestError.Kind) -> Optional[str]:
        value = entry.get(field)
        if value is None:
            return None
        if not isinstance(value, str):
            raise ManifestError(kind, f"{field!r} must be a string, got {value!r}")
        return value
