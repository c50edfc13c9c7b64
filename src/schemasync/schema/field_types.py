"""
Field types for declarative table schemas.

A table schema names its fields with descriptors such as ``"Varchar(50)"``,
``"Int"`` or ``"Enum('Draft,Published', 'Draft')"``. The factory below looks
the type name up in a registry and builds the matching field type, which
knows the spec string to require from the database. Descriptor arguments are
parsed as plain literals; nothing in a descriptor is ever executed.
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple, Type, Union

from ..exceptions import ConfigurationError


logger = logging.getLogger(__name__)

UTF8_CHARSET = "character set utf8 collate utf8_general_ci"

_DESCRIPTOR = re.compile(r"^\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*(?:\((?P<args>.*)\))?\s*$", re.DOTALL)
_ARGUMENT = re.compile(
    r"""\s*(?:'(?P<single>(?:[^'\\]|\\.)*)'|"(?P<double>(?:[^"\\]|\\.)*)"|(?P<bare>[^,'"]+?))\s*(?:,|$)""",
    re.DOTALL,
)


def _parse_literal(token: str) -> Any:
    lowered = token.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("null", "none"):
        return None
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        return token


def parse_descriptor(descriptor: str) -> Tuple[str, List[Any]]:
    """Split ``"Name(arg, 'text')"`` into ``("Name", [arg, "text"])``."""
    match = _DESCRIPTOR.match(descriptor)
    if not match:
        raise ConfigurationError(f"Invalid field descriptor: {descriptor!r}")

    args: List[Any] = []
    raw_args = (match.group("args") or "").strip()
    position = 0
    while position < len(raw_args):
        arg_match = _ARGUMENT.match(raw_args, position)
        if not arg_match or arg_match.end() == position:
            raise ConfigurationError(
                f"Invalid arguments in field descriptor: {descriptor!r}"
            )
        if arg_match.group("single") is not None:
            args.append(arg_match.group("single").replace("\\'", "'"))
        elif arg_match.group("double") is not None:
            args.append(arg_match.group("double").replace('\\"', '"'))
        else:
            args.append(_parse_literal(arg_match.group("bare").strip()))
        position = arg_match.end()

    return match.group("name"), args


class FieldType(ABC):
    """A typed field that can produce its database spec."""

    def __init__(self, name: str):
        self.name = name

    @property
    @abstractmethod
    def spec(self) -> str:
        """Spec string required for this field."""

    async def require_field(self, reconciler: Any, table: str) -> None:
        """Ask the reconciler to make the field match this type."""
        await reconciler.require_field(table, self.name, self.spec)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, spec={self.spec!r})"


class Varchar(FieldType):
    def __init__(self, name: str, size: int = 50):
        super().__init__(name)
        self.size = int(size)

    @property
    def spec(self) -> str:
        return f"varchar({self.size}) {UTF8_CHARSET}"


class Text(FieldType):
    @property
    def spec(self) -> str:
        return f"text {UTF8_CHARSET}"


class HTMLText(Text):
    pass


class Int(FieldType):
    def __init__(self, name: str, default: int = 0):
        super().__init__(name)
        self.default = int(default)

    @property
    def spec(self) -> str:
        return f"integer not null default {self.default}"


class ForeignKey(Int):
    """Integer reference to another table's ID."""

    def __init__(self, name: str, related_class: str = ""):
        super().__init__(name, 0)
        self.related_class = related_class


class Boolean(FieldType):
    def __init__(self, name: str, default: Union[bool, int] = False):
        super().__init__(name)
        self.default = bool(default)

    @property
    def spec(self) -> str:
        return f"boolean not null default {str(self.default).lower()}"


class Decimal(FieldType):
    def __init__(self, name: str, whole_size: int = 9, decimal_size: int = 2):
        super().__init__(name)
        self.whole_size = int(whole_size)
        self.decimal_size = int(decimal_size)

    @property
    def spec(self) -> str:
        return f"decimal({self.whole_size},{self.decimal_size}) not null default 0"


class Currency(Decimal):
    def __init__(self, name: str):
        super().__init__(name, 9, 2)


class Float(FieldType):
    @property
    def spec(self) -> str:
        return "float not null default 0"


class Date(FieldType):
    @property
    def spec(self) -> str:
        return "date"


class Datetime(FieldType):
    @property
    def spec(self) -> str:
        return "timestamp"


class Time(FieldType):
    @property
    def spec(self) -> str:
        return "time"


class Enum(FieldType):
    """
    A field holding one of a fixed list of values.

    Stored as a varchar wide enough for the longest value.
    """

    def __init__(self, name: str, values: Union[str, Sequence[str]] = (), default: Any = None):
        super().__init__(name)
        if isinstance(values, str):
            values = [value.strip() for value in values.split(",")]
        self.values = [value for value in values if value != ""]
        if not self.values:
            raise ConfigurationError(f"Enum field {name} needs at least one value")
        self.default = self.values[0] if default is None else str(default)
        if self.default not in self.values:
            raise ConfigurationError(
                f"Enum field {name} default '{self.default}' is not one of {self.values}"
            )

    @property
    def spec(self) -> str:
        size = max(len(value) for value in self.values)
        return f"varchar({size}) {UTF8_CHARSET} default '{self.default}'"


class FieldTypeFactory:
    """
    Factory for building field types from schema descriptors.

    Type names are resolved by a static registry lookup. Custom types can be
    added with ``register_type``.
    """

    _TYPE_REGISTRY: Dict[str, Type[FieldType]] = {
        "Varchar": Varchar,
        "Text": Text,
        "HTMLText": HTMLText,
        "Int": Int,
        "ForeignKey": ForeignKey,
        "Boolean": Boolean,
        "Decimal": Decimal,
        "Currency": Currency,
        "Float": Float,
        "Date": Date,
        "Datetime": Datetime,
        "SSDatetime": Datetime,
        "Time": Time,
        "Enum": Enum,
    }

    @classmethod
    def create(cls, field_name: str, descriptor: str) -> FieldType:
        """
        Build the field type described by ``descriptor`` for ``field_name``.

        Raises:
            ConfigurationError: If the type is unknown or its arguments don't fit
        """
        type_name, args = parse_descriptor(descriptor)

        field_class = cls._TYPE_REGISTRY.get(type_name)
        if field_class is None:
            raise ConfigurationError(
                f"Unknown field type '{type_name}' for field {field_name}. "
                f"Available types: {sorted(cls._TYPE_REGISTRY)}"
            )

        try:
            return field_class(field_name, *args)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid arguments for {type_name} field {field_name}: {args}",
                cause=e,
            ) from e

    @classmethod
    def register_type(cls, type_name: str, field_class: Type[FieldType]) -> None:
        """Register a custom field type under ``type_name``."""
        if not issubclass(field_class, FieldType):
            raise ConfigurationError(
                f"Field class {field_class} must inherit from FieldType"
            )
        cls._TYPE_REGISTRY[type_name] = field_class
        logger.info(f"Registered field type: {type_name}")

    @classmethod
    def get_supported_types(cls) -> List[str]:
        return sorted(cls._TYPE_REGISTRY)
