"""
Field and index spec handling for schemasync.

Spec strings are backend-specific descriptions such as
``varchar(50) character set utf8 collate utf8_general_ci`` or ``unique (A,B)``.
This module prepares required specs before they are diffed against the
snapshot and decides whether two specs describe the same thing.
"""

import re
from dataclasses import dataclass
from typing import FrozenSet, Literal, Optional, Tuple, Union

from ..config import IndexDefinition


_CHARSET_CLAUSE = re.compile(
    r" *character set [^ ]+( collate [^ ]+)?( |$)", re.IGNORECASE
)
_COMMA_SPACING = re.compile(r" *, *")

# type name, optional "(args)", then modifiers
_FIELD_SPEC = re.compile(
    r"^\s*(?P<type>[a-z_][a-z0-9_ ]*?)\s*(?:\((?P<args>[^()]*)\))?(?P<rest>(?:\s+.*)?)$",
    re.IGNORECASE | re.DOTALL,
)
_INDEX_SPEC = re.compile(
    r"^\s*(?P<kind>unique|fulltext|index)?\s*\((?P<columns>[^()]+)\)\s*$",
    re.IGNORECASE,
)
_DEFAULT = re.compile(r"\bdefault\s+('(?:[^']|'')*'|\S+)", re.IGNORECASE)
_CHARSET = re.compile(r"\bcharacter set\s+(\S+)", re.IGNORECASE)
_COLLATE = re.compile(r"\bcollate\s+(\S+)", re.IGNORECASE)
_NOT_NULL = re.compile(r"\bnot null\b", re.IGNORECASE)
_NULL = re.compile(r"\bnull\b", re.IGNORECASE)

IndexSpecInput = Union[bool, str, IndexDefinition]


def strip_collation(spec: str) -> str:
    """Remove a ``character set X [collate Y]`` clause from a field spec."""
    return _CHARSET_CLAUSE.sub(r"\2", spec)


def expand_index_spec(index: str, spec: IndexSpecInput) -> str:
    """Turn any accepted index description into its spec string."""
    if spec is True:
        spec = f"({index})"
    elif isinstance(spec, IndexDefinition):
        spec = spec.to_spec()
    elif not isinstance(spec, str):
        raise ValueError(f"Unsupported index spec for {index}: {spec!r}")
    return _COMMA_SPACING.sub(",", spec)


@dataclass(frozen=True)
class NormalizedFieldSpec:
    """Structured form of a field spec used for comparison."""

    type_name: str
    args: Tuple[str, ...]
    nullable: bool
    default: Optional[str]
    charset: Optional[str]
    collation: Optional[str]
    modifiers: FrozenSet[str]


@dataclass(frozen=True)
class NormalizedIndexSpec:
    """Structured form of an index spec used for comparison."""

    kind: str
    columns: Tuple[str, ...]


def _split_args(args: Optional[str]) -> Tuple[str, ...]:
    """Split type arguments on commas outside quotes.

    Quoted arguments such as enum values are case-sensitive and kept as
    written; bare ones like lengths and precisions are lowercased.
    """
    if not args:
        return ()

    parts = []
    current = []
    quoted = False
    for char in args:
        if char == "'":
            quoted = not quoted
        elif char == "," and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))

    return tuple(
        part if part.startswith("'") else part.lower()
        for part in (part.strip() for part in parts)
    )


def normalize_field_spec(spec: str) -> Optional[NormalizedFieldSpec]:
    """Parse a field spec; returns None when the spec isn't understood."""
    match = _FIELD_SPEC.match(spec)
    if not match:
        return None

    rest = match.group("rest") or ""
    default = None
    default_match = _DEFAULT.search(rest)
    if default_match:
        default = default_match.group(1)
        # quoted defaults keep their case, bare ones don't
        if not default.startswith("'"):
            default = default.lower()
        rest = rest[: default_match.start()] + rest[default_match.end():]

    charset = None
    charset_match = _CHARSET.search(rest)
    if charset_match:
        charset = charset_match.group(1).lower()
        rest = _CHARSET.sub("", rest)

    collation = None
    collate_match = _COLLATE.search(rest)
    if collate_match:
        collation = collate_match.group(1).lower()
        rest = _COLLATE.sub("", rest)

    nullable = True
    if _NOT_NULL.search(rest):
        nullable = False
        rest = _NOT_NULL.sub("", rest)
    rest = _NULL.sub("", rest)

    return NormalizedFieldSpec(
        type_name=" ".join(match.group("type").lower().split()),
        args=_split_args(match.group("args")),
        nullable=nullable,
        default=default,
        charset=charset,
        collation=collation,
        modifiers=frozenset(token.lower() for token in rest.split()),
    )


def normalize_index_spec(spec: str) -> Optional[NormalizedIndexSpec]:
    """Parse an index spec; returns None when the spec isn't understood.

    Column names keep their case, since quoted identifiers are case-sensitive.
    """
    match = _INDEX_SPEC.match(spec)
    if not match:
        return None
    kind = (match.group("kind") or "index").lower()
    columns = tuple(
        column.strip().strip('"`')
        for column in match.group("columns").split(",")
    )
    return NormalizedIndexSpec(kind=kind, columns=columns)


class SpecComparator:
    """Decides whether a stored spec and a required spec differ.

    In ``normalized`` mode both specs are parsed and compared structurally,
    falling back to raw string comparison when either side can't be parsed.
    ``raw`` mode always compares the strings as they are.
    """

    def __init__(self, mode: Literal["normalized", "raw"] = "normalized"):
        self.mode = mode

    def field_differs(self, current: str, required: str) -> bool:
        return self._differs(current, required, normalize_field_spec)

    def index_differs(self, current: str, required: str) -> bool:
        return self._differs(current, required, normalize_index_spec)

    def is_cosmetic(self, current: str, required: str, kind: str = "field") -> bool:
        """True when the raw strings differ but the structured forms match."""
        if current == required or self.mode == "raw":
            return False
        normalize = normalize_field_spec if kind == "field" else normalize_index_spec
        current_form = normalize(current)
        required_form = normalize(required)
        return (
            current_form is not None
            and required_form is not None
            and current_form == required_form
        )

    def _differs(self, current: str, required: str, normalize) -> bool:
        if current == required:
            return False
        if self.mode == "raw":
            return True
        current_form = normalize(current)
        required_form = normalize(required)
        if current_form is None or required_form is None:
            return True
        return current_form != required_form
