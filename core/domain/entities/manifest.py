"""
Manifest entities.

Typed, immutable view of the ``[setup]`` block of a project's fastly.toml:
the backends and edge dictionaries a deployment needs before its first run.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional


class InputKind(str, Enum):
    """How a dictionary item value is collected and handled."""

    PLAIN = "string"
    SECRET = "password"


@dataclass(frozen=True)
class BackendSpec:
    """Upstream host the deployed service will call."""

    name: str
    address: str
    port: int
    prompt: Optional[str] = None

    @property
    def resource_name(self) -> str:
        return f"backend:{self.name}"


@dataclass(frozen=True)
class DictionaryItemSpec:
    """One key of an edge dictionary."""

    key: str
    kind: InputKind
    prompt: Optional[str] = None
    default: Optional[str] = field(default=None, repr=False)

    @property
    def is_secret(self) -> bool:
        return self.kind is InputKind.SECRET


@dataclass(frozen=True)
class DictionarySpec:
    """Keyed configuration store and its items, in declaration order."""

    name: str
    items: tuple[DictionaryItemSpec, ...]
    prompt: Optional[str] = None

    @property
    def resource_name(self) -> str:
        return f"dictionary:{self.name}"

    def input_name(self, item: DictionaryItemSpec) -> str:
        """Form field carrying the value for ``item``."""
        return f"dict.{self.name}.{item.key}"


@dataclass(frozen=True)
class Manifest:
    """Resources declared by a project, in declaration order."""

    backends: tuple[BackendSpec, ...] = ()
    dictionaries: tuple[DictionarySpec, ...] = ()

    def resolve_values(
        self, dictionary: DictionarySpec, inputs: Mapping[str, str]
    ) -> dict[str, str]:
        """Supplied value, falling back to the item default, for every item that has one."""
        values: dict[str, str] = {}
        for item in dictionary.items:
            value = inputs.get(dictionary.input_name(item))
            if value is None:
                value = item.default
            if value is not None:
                values[item.key] = value
        return values

    def required_inputs(
        self, inputs: Mapping[str, str], skip: frozenset[str] = frozenset()
    ) -> list[dict[str, object]]:
        """
        Describe the items that still need a value from the user.

        Args:
            inputs: Values supplied so far, keyed by ``dict.<name>.<key>``
            skip: Resource names already configured (never asked again)

        Returns:
            One entry per missing item with its field name, prompt and secrecy
        """
        missing: list[dict[str, object]] = []
        for dictionary in self.dictionaries:
            if dictionary.resource_name in skip:
                continue
            resolved = self.resolve_values(dictionary, inputs)
            for item in dictionary.items:
                if item.key not in resolved:
                    missing.append(
                        {
                            "field": dictionary.input_name(item),
                            "dictionary": dictionary.name,
                            "prompt": item.prompt or item.key,
                            "secret": item.is_secret,
                        }
                    )
        return missing
