#!/usr/bin/env python3
"""
Querydsl SQL Query Type Generator

Scans Java sources for Spring Data relational entities (classes annotated
with @Table), collects their persisted fields across the superclass chain,
and generates one Querydsl SQL companion class per entity:
  - Q<Entity> extending RelationalPathBase<Q<Entity>>
  - one typed path per persisted column
  - a PrimaryKey accessor for the @Id field
  - addMetadata() with ColumnMetadata (JDBC type, size, digits, nullability)

Output is byte-stable for unchanged input apart from the generation
timestamp, so regenerating does not produce spurious diffs.

Usage:
    python generate_query_types.py --sources src/main/java --output-dir target/generated-sources
    python generate_query_types.py --sources Order.java Customer.java --output-dir generated/
"""

from __future__ import annotations

import argparse
import enum
import logging
import re
import sys
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)


# =============================================================================
# Markers
# =============================================================================

TABLE = "org.springframework.data.relational.core.mapping.Table"
COLUMN = "org.springframework.data.relational.core.mapping.Column"
ID = "org.springframework.data.annotation.Id"
TRANSIENT = "org.springframework.data.annotation.Transient"
JDBC_TYPE_CODE = "org.hibernate.annotations.JdbcTypeCode"

MARKER_KINDS = (TABLE, COLUMN, ID, TRANSIENT, JDBC_TYPE_CODE)

# org.hibernate.type.SqlTypes.JSON
JSON_TYPE_CODE = "3001"


class MarkerLookup(Protocol):
    """Read-only view over the annotations of a type or field."""

    def has_marker(self, kind: str) -> bool: ...

    def marker_value(self, kind: str, attribute: str = "value") -> Optional[str]: ...


@dataclass
class Markers:
    """Annotation attributes keyed by qualified annotation name.

    Values are kept as source text: string literals are unquoted and the
    few constants the generator compares against (``SqlTypes.JSON``) are
    replaced by their value.
    """
    values: dict[str, dict[str, str]] = field(default_factory=dict)

    def has_marker(self, kind: str) -> bool:
        return kind in self.values

    def marker_value(self, kind: str, attribute: str = "value") -> Optional[str]:
        return self.values.get(kind, {}).get(attribute)


# =============================================================================
# Data structures
# =============================================================================

ROOT_TYPE = "java.lang.Object"
DEFAULT_SCHEMA = "public"
DEFAULT_LENGTH = 0
DEFAULT_PRECISION = 0
DEFAULT_SCALE = 2
# Integer.MAX_VALUE, used for JSON columns
UNBOUNDED_SIZE = 2147483647
MAX_INHERITANCE_DEPTH = 64


class ValueKind(enum.Enum):
    """Java value types with a dedicated path and column type."""
    STRING = "java.lang.String"
    INTEGER = "java.lang.Integer"
    LONG = "java.lang.Long"
    UTIL_DATE = "java.util.Date"
    SQL_TIMESTAMP = "java.sql.Timestamp"
    LOCAL_DATE_TIME = "java.time.LocalDateTime"
    LOCAL_DATE = "java.time.LocalDate"
    LOCAL_TIME = "java.time.LocalTime"
    BIG_DECIMAL = "java.math.BigDecimal"
    FLOAT = "java.lang.Float"
    DOUBLE = "java.lang.Double"
    BYTE = "java.lang.Byte"
    SHORT = "java.lang.Short"
    BOOLEAN = "java.lang.Boolean"
    OTHER = "*"

    @classmethod
    def of(cls, java_type: str) -> ValueKind:
        """Classify a qualified Java type; primitives share their wrapper's kind."""
        java_type = PRIMITIVE_WRAPPERS.get(java_type, java_type)
        return _KINDS_BY_TYPE.get(java_type, cls.OTHER)


PRIMITIVE_WRAPPERS = {
    "int": "java.lang.Integer",
    "long": "java.lang.Long",
    "short": "java.lang.Short",
    "byte": "java.lang.Byte",
    "float": "java.lang.Float",
    "double": "java.lang.Double",
    "boolean": "java.lang.Boolean",
}

_KINDS_BY_TYPE = {k.value: k for k in ValueKind if k is not ValueKind.OTHER}


@dataclass(frozen=True)
class FieldDeclaration:
    """A field as declared in Java source."""
    name: str
    java_type: str
    modifiers: frozenset[str] = frozenset()
    markers: MarkerLookup = field(default_factory=Markers)
    doc: str = ""


@dataclass
class EntityDeclaration:
    """A Java class as seen by the source scanner."""
    qualified_name: str
    supertype: Optional[str] = None
    fields: list[FieldDeclaration] = field(default_factory=list)
    markers: MarkerLookup = field(default_factory=Markers)
    source_file: Optional[Path] = None
    wildcard_imports: tuple[str, ...] = ()

    @property
    def simple_name(self) -> str:
        return self.qualified_name.rpartition(".")[2]

    @property
    def package(self) -> str:
        return self.qualified_name.rpartition(".")[0]

    @property
    def is_entity(self) -> bool:
        return self.markers.has_marker(TABLE)


@dataclass(frozen=True)
class ColumnSpec:
    """One persisted field and the column it maps to."""
    field_name: str
    column: str
    java_type: str
    nullable: bool = True
    json: bool = False
    length: int = DEFAULT_LENGTH
    precision: int = DEFAULT_PRECISION
    scale: int = DEFAULT_SCALE
    column_definition: str = ""
    doc: str = ""

    @property
    def kind(self) -> ValueKind:
        return ValueKind.of(self.java_type)


@dataclass(frozen=True)
class EntityDescriptor:
    """Table mapping of one entity, ready to be rendered."""
    qualified_name: str
    table: str
    schema: str = DEFAULT_SCHEMA
    columns: tuple[ColumnSpec, ...] = ()
    primary_key: Optional[str] = None  # field name of the @Id column

    @property
    def simple_name(self) -> str:
        return self.qualified_name.rpartition(".")[2]

    @property
    def package(self) -> str:
        return self.qualified_name.rpartition(".")[0]

    @property
    def query_class_name(self) -> str:
        return f"Q{self.simple_name}"

    @property
    def instance_name(self) -> str:
        """Name of the static default instance (lower-camel simple name)."""
        name = self.simple_name[:1].lower() + self.simple_name[1:]
        if any(c.field_name == name for c in self.columns):
            name += "1"
        return name


# =============================================================================
# Naming
# =============================================================================

# Boundary before an upper-case letter that follows a non-upper-case one, or
# before the last capital of an upper-case run that starts a new word.
_CAMEL_CASE_RE = re.compile(r"(?<=[^A-Z])(?=[A-Z])|(?!^)(?=[A-Z][a-z])")


def to_column_name(field_name: str) -> str:
    """Default column name for a field without an explicit @Column value.

    Examples:
        userId  -> user_id
        URLPath -> url_path
        ID      -> id
        user_id -> user_id
    """
    return "_".join(part.lower() for part in _CAMEL_CASE_RE.split(field_name) if part)


# =============================================================================
# Field collector
# =============================================================================

class FieldCollector:
    """Collect the persisted columns of an entity across its superclasses.

    Superclasses are looked up by qualified name in ``index``. A superclass
    missing from the index ends the walk as if it were java.lang.Object.
    """

    def __init__(self, index: Mapping[str, EntityDeclaration]):
        self.index = index

    def collect(self, entity: EntityDeclaration) -> tuple[list[ColumnSpec], Optional[str]]:
        """Return the columns in base-first declaration order and the @Id field."""
        columns: list[ColumnSpec] = []
        owners: dict[str, str] = {}
        primary_key = self._collect(entity, columns, owners, 0)
        return columns, primary_key

    def _collect(self, entity: EntityDeclaration, columns: list[ColumnSpec],
                 owners: dict[str, str], depth: int) -> Optional[str]:
        primary_key = None
        superclass = self._superclass(entity, depth)
        if superclass is not None:
            primary_key = self._collect(superclass, columns, owners, depth + 1)

        for decl in entity.fields:
            if self._should_be_ignored(decl):
                continue

            column_name = decl.markers.marker_value(COLUMN) or to_column_name(decl.name)
            owner = f"{entity.qualified_name}.{decl.name}"
            if column_name in owners:
                logger.warning("%s maps to column '%s' already mapped by %s; skipping it",
                               owner, column_name, owners[column_name])
                continue
            owners[column_name] = owner
            columns.append(self._column(decl, column_name))

            if decl.markers.has_marker(ID):
                if primary_key is None:
                    primary_key = decl.name
                else:
                    logger.warning("%s: ignoring additional @Id, primary key is '%s'",
                                   owner, primary_key)

        return primary_key

    def _superclass(self, entity: EntityDeclaration, depth: int) -> Optional[EntityDeclaration]:
        name = entity.supertype
        if not name or name == ROOT_TYPE:
            return None
        if depth >= MAX_INHERITANCE_DEPTH:
            logger.warning("Superclass chain of %s is deeper than %d; not following %s",
                           entity.qualified_name, MAX_INHERITANCE_DEPTH, name)
            return None
        superclass = self.index.get(name)
        if superclass is None:
            logger.warning("Superclass %s of %s was not scanned; its fields are not mapped",
                           name, entity.qualified_name)
        return superclass

    @staticmethod
    def _should_be_ignored(decl: FieldDeclaration) -> bool:
        return (bool(decl.modifiers & {"static", "final", "transient"})
                or decl.markers.has_marker(TRANSIENT))

    def _column(self, decl: FieldDeclaration, column_name: str) -> ColumnSpec:
        markers = decl.markers
        return ColumnSpec(
            field_name=decl.name,
            column=column_name,
            java_type=decl.java_type,
            nullable=markers.marker_value(COLUMN, "nullable") != "false",
            json=markers.marker_value(JDBC_TYPE_CODE) == JSON_TYPE_CODE,
            length=self._int_hint(decl, "length", DEFAULT_LENGTH),
            precision=self._int_hint(decl, "precision", DEFAULT_PRECISION),
            scale=self._int_hint(decl, "scale", DEFAULT_SCALE),
            column_definition=markers.marker_value(COLUMN, "columnDefinition") or "",
            doc=decl.doc,
        )

    @staticmethod
    def _int_hint(decl: FieldDeclaration, attribute: str, default: int) -> int:
        """Numeric @Column attribute; missing, zero or unreadable means default."""
        raw = decl.markers.marker_value(COLUMN, attribute)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            logger.warning("Field %s: @Column %s=%r is not a number, using %d",
                           decl.name, attribute, raw, default)
            return default
        return value or default


def describe_entity(entity: EntityDeclaration,
                    index: Mapping[str, EntityDeclaration]) -> EntityDescriptor:
    """Assemble the table mapping of an entity."""
    columns, primary_key = FieldCollector(index).collect(entity)
    markers = entity.markers
    table = (markers.marker_value(TABLE) or markers.marker_value(TABLE, "name")
             or entity.simple_name)
    schema = markers.marker_value(TABLE, "schema") or DEFAULT_SCHEMA
    return EntityDescriptor(
        qualified_name=entity.qualified_name,
        table=table,
        schema=schema,
        columns=tuple(columns),
        primary_key=primary_key,
    )


# =============================================================================
# Type mapper
# =============================================================================

@dataclass(frozen=True)
class TypeMapping:
    """How a value kind is declared as a path and registered as a column.

    ``size`` and ``digits`` of None are taken from the column's hints.
    """
    sql_type: str
    size: Optional[int]
    digits: Optional[int] = None
    path: str = "Simple"


TYPE_MAPPINGS: dict[ValueKind, TypeMapping] = {
    ValueKind.STRING: TypeMapping("VARCHAR", None, path="String"),
    ValueKind.INTEGER: TypeMapping("INTEGER", 10, path="Number"),
    ValueKind.LONG: TypeMapping("BIGINT", 19, path="Number"),
    ValueKind.UTIL_DATE: TypeMapping("TIMESTAMP", 19, path="DateTime"),
    ValueKind.SQL_TIMESTAMP: TypeMapping("TIMESTAMP", 19, path="DateTime"),
    ValueKind.LOCAL_DATE_TIME: TypeMapping("TIMESTAMP", 29, 6, path="DateTime"),
    ValueKind.LOCAL_DATE: TypeMapping("DATE", 10, path="DateTime"),
    ValueKind.LOCAL_TIME: TypeMapping("TIME", 10, path="DateTime"),
    ValueKind.BIG_DECIMAL: TypeMapping("NUMERIC", None, None, path="Number"),
    ValueKind.FLOAT: TypeMapping("FLOAT", 5, path="Number"),
    ValueKind.DOUBLE: TypeMapping("DOUBLE", 5, path="Number"),
    ValueKind.BYTE: TypeMapping("CHAR", 1, path="Number"),
    ValueKind.SHORT: TypeMapping("NUMERIC", 5, path="Number"),
    ValueKind.BOOLEAN: TypeMapping("BIT", 1, path="Boolean"),
    ValueKind.OTHER: TypeMapping("VARCHAR", None, path="Simple"),
}

# Integer columns narrowed by their column definition, checked in order.
_INTEGER_SUBTYPES = (
    ("tinyint", "TINYINT", 3),
    ("smallint", "SMALLINT", 3),
)


@dataclass(frozen=True)
class ColumnType:
    """JDBC type registered for a column through ColumnMetadata."""
    sql_type: str
    size: int
    digits: Optional[int] = None
    nullable: bool = True

    def render(self) -> str:
        text = f"ofType(Types.{self.sql_type}).withSize({self.size})"
        if self.digits is not None:
            text += f".withDigits({self.digits})"
        if not self.nullable:
            text += ".notNull()"
        return text


def map_column_type(column: ColumnSpec) -> ColumnType:
    """Resolve the JDBC type, size and digits of a column."""
    kind = column.kind
    mapping = TYPE_MAPPINGS[kind]
    sql_type, size, digits = mapping.sql_type, mapping.size, mapping.digits

    if kind is ValueKind.STRING:
        size = UNBOUNDED_SIZE if column.json else column.length
    elif kind is ValueKind.INTEGER:
        definition = column.column_definition.lower()
        for needle, subtype, subtype_size in _INTEGER_SUBTYPES:
            if needle in definition:
                sql_type, size = subtype, subtype_size
                break
    elif kind is ValueKind.BIG_DECIMAL:
        size, digits = column.precision, column.scale
    elif kind is ValueKind.OTHER:
        if column.json:
            sql_type, size = "OTHER", UNBOUNDED_SIZE
        else:
            size = column.length

    return ColumnType(sql_type, size, digits, column.nullable)


# =============================================================================
# Code generator
# =============================================================================

GENERATOR_NAME = "generate_query_types"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_IMPORTS = [
    "import static com.querydsl.core.types.PathMetadataFactory.*;",
    "import com.querydsl.core.types.dsl.*;",
    "import com.querydsl.core.types.PathMetadata;",
    "import javax.annotation.processing.Generated;",
    "import com.querydsl.core.types.Path;",
    "import com.querydsl.sql.ColumnMetadata;",
    "import java.sql.Types;",
]


_JAVA_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t",
                 "\r": "\\r", "\b": "\\b", "\f": "\\f"}


def _java_string(value: str) -> str:
    escaped = []
    for ch in value:
        if ch in _JAVA_ESCAPES:
            escaped.append(_JAVA_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7f:
            # javac decodes \u escapes before lexing; octal stays inside the literal
            escaped.append(f"\\{ord(ch):03o}")
        else:
            escaped.append(ch)
    return '"' + "".join(escaped) + '"'


def _type_argument(java_type: str) -> str:
    """Type as written in generics and class literals (java.lang is implicit)."""
    java_type = PRIMITIVE_WRAPPERS.get(java_type, java_type)
    if java_type == "char":
        java_type = "java.lang.Character"
    if java_type.startswith("java.lang.") and java_type.count(".") == 2:
        return java_type[len("java.lang."):]
    return java_type


class QueryTypeGenerator:
    """Generate Querydsl SQL companion classes from entity descriptors."""

    def generate(self, entity: EntityDescriptor,
                 generated_at: Optional[datetime] = None) -> str:
        """Generate the complete source of ``Q<Entity>``."""
        stamp = (generated_at or datetime.now()).strftime(TIMESTAMP_FORMAT)
        q = entity.query_class_name

        lines = []
        if entity.package:
            lines.extend([f"package {entity.package};", ""])
        lines.extend(_IMPORTS)
        lines.append("")

        lines.extend(self._generate_header(entity, stamp))
        lines.append(f"public class {q} extends com.querydsl.sql.RelationalPathBase<{q}> {{")
        lines.append("")
        lines.append(f"    public static final {q} {entity.instance_name} = "
                     f"new {q}({_java_string(entity.table)});")
        lines.append("")

        lines.extend(self._generate_paths(entity))
        lines.extend(self._generate_primary_key(entity))
        lines.extend(self._generate_constructors(entity))
        lines.extend(self._generate_add_metadata(entity))

        lines.append("}")
        lines.append("")
        return "\n".join(lines)

    # =========================================================================
    # Header
    # =========================================================================

    def _generate_header(self, entity: EntityDescriptor, stamp: str) -> list[str]:
        comment = f"Generated from {entity.qualified_name}"
        return [
            "/**",
            f" * {comment}",
            f" * @since {stamp}",
            " */",
            f"@Generated(value = {_java_string(GENERATOR_NAME)}, "
            f"date = {_java_string(stamp)}, comments = {_java_string(comment)})",
        ]

    # =========================================================================
    # Paths
    # =========================================================================

    def _generate_paths(self, entity: EntityDescriptor) -> list[str]:
        lines = []
        for column in entity.columns:
            if column.doc:
                lines.extend(self._javadoc(column.doc))
            lines.append(f"    {self._path_declaration(column)}")
            lines.append("")
        return lines

    @staticmethod
    def _path_declaration(column: ColumnSpec) -> str:
        name = column.field_name
        path = TYPE_MAPPINGS[column.kind].path
        if path == "String":
            return f'public final StringPath {name} = createString("{name}");'
        if path == "Boolean":
            return f'public final BooleanPath {name} = createBoolean("{name}");'

        # Primitives are registered with their wrapper class
        type_arg = _type_argument(column.java_type)
        if path == "Number":
            return (f"public final NumberPath<{type_arg}> {name} = "
                    f'createNumber("{name}", {type_arg}.class);')
        if path == "DateTime":
            return (f"public final DateTimePath<{type_arg}> {name} = "
                    f'createDateTime("{name}", {type_arg}.class);')
        return (f"public final SimplePath<{type_arg}> {name} = "
                f'createSimple("{name}", {type_arg}.class);')

    @staticmethod
    def _javadoc(doc: str) -> list[str]:
        lines = ["    /**"]
        for line in doc.split("\n"):
            lines.append(f"     * {line}".rstrip())
        lines.append("     */")
        return lines

    def _generate_primary_key(self, entity: EntityDescriptor) -> list[str]:
        if entity.primary_key is None:
            return []
        q = entity.query_class_name
        return [
            "    /**",
            "     * Primary key",
            "     */",
            f"    public final com.querydsl.sql.PrimaryKey<{q}> primaryKey = "
            f"createPrimaryKey({entity.primary_key});",
            "",
        ]

    # =========================================================================
    # Constructors
    # =========================================================================

    def _generate_constructors(self, entity: EntityDescriptor) -> list[str]:
        q = entity.query_class_name
        schema = _java_string(entity.schema)
        table = _java_string(entity.table)
        return [
            f"    public {q}(String variable) {{",
            f"        super({q}.class, forVariable(variable), {schema}, {table});",
            "        addMetadata();",
            "    }",
            "",
            f"    public {q}(String variable, String schema, String table) {{",
            f"        super({q}.class, forVariable(variable), schema, table);",
            "        addMetadata();",
            "    }",
            "",
            f"    public {q}(Path<? extends {q}> path) {{",
            f"        super(path.getType(), path.getMetadata(), {schema}, {table});",
            "        addMetadata();",
            "    }",
            "",
            f"    public {q}(PathMetadata metadata) {{",
            f"        super({q}.class, metadata, {schema}, {table});",
            "        addMetadata();",
            "    }",
            "",
        ]

    # =========================================================================
    # addMetadata
    # =========================================================================

    def _generate_add_metadata(self, entity: EntityDescriptor) -> list[str]:
        lines = ["    public void addMetadata() {"]
        for index, column in enumerate(entity.columns, start=1):
            column_type = map_column_type(column).render()
            lines.append(
                f"        addMetadata({column.field_name}, "
                f"ColumnMetadata.named({_java_string(column.column)})"
                f".withIndex({index}).{column_type});")
        lines.append("    }")
        return lines


# =============================================================================
# Java source scanner
# =============================================================================

# Comments, text blocks, string and char literals (masked before scanning).
_MASK_RE = re.compile(
    r'//[^\n]*'
    r'|/\*.*?\*/'
    r'|""".*?"""'
    r'|"(?:\\.|[^"\\\n])*"'
    r"|'(?:\\.|[^'\\\n])*'",
    re.DOTALL,
)
_PACKAGE_RE = re.compile(r'^\s*package\s+([\w.]+)\s*;', re.MULTILINE)
_IMPORT_RE = re.compile(r'^\s*import\s+(static\s+)?([\w.]+?)(\.\*)?\s*;', re.MULTILINE)
_TYPE_RE = re.compile(r'(?<![\w@.])(class|interface|enum|record)\s+(\w+)')
_EXTENDS_RE = re.compile(r'\bextends\s+([\w.]+)')
_ANNOTATION_RE = re.compile(r'@\s*([A-Za-z_$][\w.$]*)')
_ATTRIBUTE_RE = re.compile(r'^\s*([A-Za-z_]\w*)\s*=(?!=)\s*(.*)$', re.DOTALL)
_DECLARATOR_RE = re.compile(
    r'^(?P<type>.+?)\s*\b(?P<name>[A-Za-z_$][\w$]*)\s*(?P<dims>(?:\[\s*\]\s*)*)$',
    re.DOTALL,
)
_NAME_RE = re.compile(r'^\s*([A-Za-z_$][\w$]*)\s*((?:\[\s*\]\s*)*)$')

MODIFIERS = {
    "public", "protected", "private", "static", "final", "transient",
    "volatile", "abstract", "native", "synchronized", "strictfp", "default",
}

JAVA_LANG_TYPES = {
    "Object", "String", "Integer", "Long", "Short", "Byte", "Float", "Double",
    "Boolean", "Character", "Number", "Enum", "Void",
}

JDK_TYPES = {
    "java.util": (
        "Collection", "List", "Set", "SortedSet", "Map", "SortedMap", "Queue",
        "Deque", "ArrayList", "LinkedList", "HashSet", "LinkedHashSet", "TreeSet",
        "HashMap", "LinkedHashMap", "TreeMap", "Optional", "UUID", "Date",
        "Calendar", "Locale", "Currency",
    ),
    "java.time": (
        "Instant", "LocalDate", "LocalDateTime", "LocalTime", "OffsetDateTime",
        "OffsetTime", "ZonedDateTime", "Duration", "Period", "Year", "YearMonth",
        "ZoneId",
    ),
    "java.sql": ("Date", "Time", "Timestamp", "Blob", "Clob"),
    "java.math": ("BigDecimal", "BigInteger"),
    "java.net": ("URI", "URL"),
}

# Types recognised behind wildcard imports without seeing their source.
_KNOWN_TYPES = (set(_KINDS_BY_TYPE) | set(MARKER_KINDS)
                | {f"{package}.{name}" for package, names in JDK_TYPES.items() for name in names})

# Annotation constants the marker lookups compare against.
_KNOWN_CONSTANTS = {
    "SqlTypes.JSON": JSON_TYPE_CODE,
    "org.hibernate.type.SqlTypes.JSON": JSON_TYPE_CODE,
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0"}


@dataclass
class SourceContext:
    """Package and imports of the file being scanned."""
    package: str = ""
    imports: dict[str, str] = field(default_factory=dict)
    wildcards: list[str] = field(default_factory=list)
    static_imports: dict[str, str] = field(default_factory=dict)
    static_wildcards: list[str] = field(default_factory=list)

    def qualify_constant(self, name: str) -> str:
        """Qualified name of a statically imported constant, else ``name``."""
        if name in self.static_imports:
            return self.static_imports[name]
        for owner in self.static_wildcards:
            candidate = f"{owner}.{name}"
            if candidate in _KNOWN_CONSTANTS:
                return candidate
        return name

    def qualify(self, name: str) -> str:
        """Best-effort qualified name of a type or annotation as written."""
        if name in PRIMITIVE_WRAPPERS or name in ("char", "void"):
            return name
        head, _, tail = name.partition(".")
        if head in self.imports:
            return self.imports[head] + (f".{tail}" if tail else "")
        if tail and head[:1].islower():
            return name
        if name in JAVA_LANG_TYPES:
            return f"java.lang.{name}"
        for package in self.wildcards:
            candidate = f"{package}.{name}"
            if candidate in _KNOWN_TYPES:
                return candidate
        return f"{self.package}.{name}" if self.package else name


def _mask(content: str) -> str:
    """Blank out comments and literals, keeping offsets and newlines."""
    return _MASK_RE.sub(lambda m: re.sub(r'[^\n]', ' ', m.group(0)), content)


def _matching(masked: str, start: int, open_ch: str, close_ch: str) -> int:
    """Index of the bracket closing the one at ``start``, or -1."""
    depth = 0
    for i in range(start, len(masked)):
        ch = masked[i]
        if ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return i
    return -1


def _split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split on ``sep`` outside brackets, generics and literals."""
    parts = []
    current = []
    depth = 0
    quote = None
    escaped = False
    for ch in text:
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch in "\"'":
            quote = ch
        elif ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
        elif ch == sep and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return [p for p in (part.strip() for part in parts) if p]


def _literal_value(text: str, ctx: Optional[SourceContext] = None) -> str:
    """Annotation argument as a plain value."""
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] == '"':
        return re.sub(r'\\(.)', lambda m: _ESCAPES.get(m.group(1), m.group(1)), text[1:-1])
    if ctx is not None:
        text = ctx.qualify_constant(text)
    return _KNOWN_CONSTANTS.get(text, text)


def _clean_javadoc(raw: str) -> str:
    lines = []
    for line in raw.split("\n"):
        line = line.strip()
        if line.startswith("*"):
            line = line[1:]
        if line.startswith(" "):
            line = line[1:]
        lines.append(line.rstrip())
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)


class JavaSourceParser:
    """Parse Java sources into entity declarations.

    This is a scanner, not a Java parser. It understands the package,
    imports, top-level class headers and field declarations together with
    their annotations and Javadoc. Method, constructor, initializer and
    nested type bodies are skipped by brace counting.
    """

    def parse_file(self, filepath: Path) -> list[EntityDeclaration]:
        """Parse a source file and return its top-level classes."""
        declarations = self.parse_source(filepath.read_text(encoding="utf-8"))
        for decl in declarations:
            decl.source_file = filepath
        return declarations

    def parse_source(self, content: str) -> list[EntityDeclaration]:
        masked = _mask(content)
        ctx = SourceContext()
        cursor = 0

        m = _PACKAGE_RE.search(masked)
        if m:
            ctx.package = m.group(1)
            cursor = m.end()
        for m in _IMPORT_RE.finditer(masked):
            is_static, name, wildcard = m.groups()
            cursor = max(cursor, m.end())
            if is_static:
                if wildcard:
                    ctx.static_wildcards.append(name)
                else:
                    ctx.static_imports[name.rpartition(".")[2]] = name
                continue
            if wildcard:
                ctx.wildcards.append(name)
            else:
                ctx.imports[name.rpartition(".")[2]] = name

        declarations = []
        while True:
            m = self._next_top_level_type(masked, cursor)
            if m is None:
                break
            open_idx = masked.find("{", m.end())
            close_idx = _matching(masked, open_idx, "{", "}") if open_idx >= 0 else -1
            if close_idx < 0:
                logger.warning("Unbalanced braces after %s %s; skipping the rest of the file",
                               m.group(1), m.group(2))
                break

            if m.group(1) == "class":
                declarations.append(self._parse_class(
                    content, masked, ctx, m, cursor, open_idx, close_idx))
            cursor = close_idx + 1

        return declarations

    @staticmethod
    def _next_top_level_type(masked: str, start: int) -> Optional[re.Match]:
        depth = 0
        pos = start
        for m in _TYPE_RE.finditer(masked, start):
            depth += masked.count("{", pos, m.start()) - masked.count("}", pos, m.start())
            pos = m.start()
            if depth == 0:
                return m
        return None

    def _parse_class(self, content: str, masked: str, ctx: SourceContext,
                     m: re.Match, preamble_start: int,
                     open_idx: int, close_idx: int) -> EntityDeclaration:
        package = ctx.package
        class_name = m.group(2)
        qualified_name = f"{package}.{class_name}" if package else class_name

        markers, _ = self._split_annotations(content, masked, preamble_start, m.start(), ctx)

        header = masked[m.end():open_idx]
        while "<" in header:
            stripped = re.sub(r'<[^<>]*>', '', header)
            if stripped == header:
                break
            header = stripped
        supertype = ROOT_TYPE
        ext = _EXTENDS_RE.search(header)
        if ext:
            supertype = ctx.qualify(ext.group(1))

        # Nested types shadow imports and same-package names inside the body
        nested = {t.group(2): f"{qualified_name}.{t.group(2)}"
                  for t in _TYPE_RE.finditer(masked, open_idx + 1, close_idx)}
        body_ctx = replace(ctx, imports={**ctx.imports, **nested})

        fields = []
        for start, end in self._member_spans(masked, open_idx + 1, close_idx):
            fields.extend(self._parse_fields(content, masked, start, end, body_ctx))

        return EntityDeclaration(
            qualified_name=qualified_name,
            supertype=supertype,
            fields=fields,
            markers=markers,
            wildcard_imports=tuple(ctx.wildcards),
        )

    # =========================================================================
    # Members
    # =========================================================================

    @staticmethod
    def _member_spans(masked: str, start: int, end: int) -> Iterable[tuple[int, int]]:
        """Yield spans of ';'-terminated member declarations in a class body."""
        member_start = start
        parens = 0
        in_initializer = False
        i = start
        while i < end:
            ch = masked[i]
            if ch == "(":
                parens += 1
            elif ch == ")":
                parens -= 1
            elif parens == 0 and ch == "=":
                in_initializer = True
            elif parens == 0 and ch == ";":
                yield member_start, i
                member_start = i + 1
                in_initializer = False
            elif parens == 0 and ch == "{":
                close = _matching(masked, i, "{", "}")
                if close < 0:
                    return
                if not in_initializer:
                    # method, constructor, initializer block or nested type
                    member_start = close + 1
                i = close
            i += 1

    def _parse_fields(self, content: str, masked: str, start: int, end: int,
                      ctx: SourceContext) -> list[FieldDeclaration]:
        markers, remainder = self._split_annotations(content, masked, start, end, ctx)
        declaration = remainder.split("=", 1)[0]
        if "(" in declaration:
            return []  # abstract method or annotation element

        tokens = remainder.split(None)
        modifiers = set()
        while tokens and tokens[0] in MODIFIERS:
            modifiers.add(tokens.pop(0))
        declarators = _split_top_level(" ".join(tokens))
        if not declarators:
            return []

        first = _DECLARATOR_RE.match(declarators[0].split("=", 1)[0].strip())
        if not first:
            return []
        base_type = re.sub(r'<.*>', '', first.group("type")).replace(" ", "")
        dims = base_type.count("[]")
        java_type = ctx.qualify(base_type.replace("[]", ""))

        doc = ""
        # Block comments only, not text inside // comments or literals
        docs = [c.group(0) for c in _MASK_RE.finditer(content, start, end)
                if c.group(0).startswith("/**") and len(c.group(0)) > 4]
        if docs:
            doc = _clean_javadoc(docs[-1][3:-2])

        fields = []
        names = [(first.group("name"), first.group("dims"))]
        for declarator in declarators[1:]:
            nm = _NAME_RE.match(declarator.split("=", 1)[0])
            if nm:
                names.append(nm.groups())
        for name, extra_dims in names:
            total_dims = dims + extra_dims.count("[")
            fields.append(FieldDeclaration(
                name=name,
                java_type=java_type + "[]" * total_dims,
                modifiers=frozenset(modifiers),
                markers=markers,
                doc=doc,
            ))
        return fields

    # =========================================================================
    # Annotations
    # =========================================================================

    def _split_annotations(self, content: str, masked: str, start: int, end: int,
                           ctx: SourceContext) -> tuple[Markers, str]:
        """Parse annotations in a span; return them and the remaining text."""
        markers = Markers()
        remainder = []
        pos = start
        for m in _ANNOTATION_RE.finditer(masked, start, end):
            if m.start() < pos:
                continue  # inside the arguments of the previous annotation
            if m.group(1) == "interface":
                continue
            remainder.append(masked[pos:m.start()])
            pos = m.end()
            arguments = {}
            j = pos
            while j < end and masked[j].isspace():
                j += 1
            if j < end and masked[j] == "(":
                close = _matching(masked, j, "(", ")")
                if close < 0 or close >= end:
                    close = end - 1
                arguments = self._parse_arguments(content[j + 1:close], ctx)
                pos = close + 1
            markers.values[ctx.qualify(m.group(1))] = arguments
        remainder.append(masked[pos:end])
        return markers, " ".join(remainder)

    @staticmethod
    def _parse_arguments(text: str, ctx: SourceContext) -> dict[str, str]:
        arguments = {}
        for part in _split_top_level(text):
            attr = _ATTRIBUTE_RE.match(part)
            if attr:
                arguments[attr.group(1)] = _literal_value(attr.group(2), ctx)
            else:
                arguments["value"] = _literal_value(part, ctx)
        return arguments


# =============================================================================
# Main
# =============================================================================

def build_index(declarations: Iterable[EntityDeclaration]) -> dict[str, EntityDeclaration]:
    """Index classes by qualified name and link wildcard-imported superclasses."""
    index: dict[str, EntityDeclaration] = {}
    for decl in declarations:
        if decl.qualified_name in index:
            logger.warning("Class %s is declared more than once; using %s",
                           decl.qualified_name, decl.source_file)
        index[decl.qualified_name] = decl

    for decl in index.values():
        if not decl.supertype or decl.supertype in index:
            continue
        simple_name = decl.supertype.rpartition(".")[2]
        for package in decl.wildcard_imports:
            candidate = f"{package}.{simple_name}"
            if candidate in index:
                decl.supertype = candidate
                break
    return index


def find_sources(sources: Iterable[str], output_dir: Path) -> list[Path]:
    """Expand files and directories into the list of .java files to scan."""
    output_dir = output_dir.resolve()
    files: list[Path] = []
    for src in sources:
        p = Path(src)
        if p.is_dir():
            for f in sorted(p.rglob("*.java")):
                if output_dir in f.resolve().parents:
                    continue
                files.append(f)
        elif p.is_file():
            files.append(p)
        else:
            raise FileNotFoundError(src)
    return files


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate Querydsl SQL query types from Spring Data relational entities")
    parser.add_argument("--sources", nargs="+", required=True,
                        help="Files and/or directories to scan for @Table annotated classes")
    parser.add_argument("--output-dir", required=True,
                        help="Destination root for generated Q classes")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log debug output")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="  %(levelname)s: %(message)s")

    output_dir = Path(args.output_dir)
    try:
        files = find_sources(args.sources, output_dir)
    except FileNotFoundError as e:
        print(f"Error: {e} is not a file or directory", file=sys.stderr)
        return 1

    java_parser = JavaSourceParser()
    declarations: list[EntityDeclaration] = []
    failures = 0

    for filepath in files:
        logger.debug("Scanning %s", filepath)
        try:
            declarations.extend(java_parser.parse_file(filepath))
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error: cannot read {filepath}: {e}", file=sys.stderr)
            failures += 1

    index = build_index(declarations)
    generator = QueryTypeGenerator()
    generated_at = datetime.now()
    generated_count = 0

    for decl in index.values():
        if not decl.is_entity:
            continue
        descriptor = describe_entity(decl, index)
        output_path = (output_dir.joinpath(*descriptor.package.split("."))
                       / f"{descriptor.query_class_name}.java")

        print(f"  -> {descriptor.query_class_name}")
        code = generator.generate(descriptor, generated_at)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(code, encoding="utf-8")
        except OSError as e:
            print(f"Error: cannot write {output_path}: {e}", file=sys.stderr)
            output_path.unlink(missing_ok=True)
            failures += 1
            continue
        generated_count += 1

    print(f"Generated {generated_count} query types")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
