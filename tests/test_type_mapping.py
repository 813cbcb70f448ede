import pytest

from generate_query_types import (
    UNBOUNDED_SIZE,
    ColumnSpec,
    ColumnType,
    ValueKind,
    map_column_type,
)


def _column(java_type, **hints):
    return ColumnSpec(field_name="value", column="value", java_type=java_type, **hints)


@pytest.mark.parametrize("java_type, expected", [
    ("java.lang.Long", "ofType(Types.BIGINT).withSize(19)"),
    ("java.lang.Integer", "ofType(Types.INTEGER).withSize(10)"),
    ("java.util.Date", "ofType(Types.TIMESTAMP).withSize(19)"),
    ("java.sql.Timestamp", "ofType(Types.TIMESTAMP).withSize(19)"),
    ("java.time.LocalDateTime", "ofType(Types.TIMESTAMP).withSize(29).withDigits(6)"),
    ("java.time.LocalDate", "ofType(Types.DATE).withSize(10)"),
    ("java.time.LocalTime", "ofType(Types.TIME).withSize(10)"),
    ("java.lang.Float", "ofType(Types.FLOAT).withSize(5)"),
    ("java.lang.Double", "ofType(Types.DOUBLE).withSize(5)"),
    ("java.lang.Byte", "ofType(Types.CHAR).withSize(1)"),
    ("java.lang.Short", "ofType(Types.NUMERIC).withSize(5)"),
    ("java.lang.Boolean", "ofType(Types.BIT).withSize(1)"),
])
def test_fixed_size_types(java_type, expected):
    assert map_column_type(_column(java_type)).render() == expected


@pytest.mark.parametrize("primitive, wrapper", [
    ("int", "java.lang.Integer"),
    ("long", "java.lang.Long"),
    ("boolean", "java.lang.Boolean"),
    ("double", "java.lang.Double"),
])
def test_primitives_map_like_their_wrappers(primitive, wrapper):
    assert ValueKind.of(primitive) is ValueKind.of(wrapper)
    assert map_column_type(_column(primitive)) == map_column_type(_column(wrapper))


def test_string_uses_declared_length():
    column = _column("java.lang.String", length=64)
    assert map_column_type(column).render() == "ofType(Types.VARCHAR).withSize(64)"


def test_json_string_is_unbounded_regardless_of_length():
    column = _column("java.lang.String", length=64, json=True)
    column_type = map_column_type(column)
    assert column_type.sql_type == "VARCHAR"
    assert column_type.size == UNBOUNDED_SIZE


@pytest.mark.parametrize("definition, expected", [
    ("tinyint(1)", "ofType(Types.TINYINT).withSize(3)"),
    ("SMALLINT UNSIGNED", "ofType(Types.SMALLINT).withSize(3)"),
    ("int(11)", "ofType(Types.INTEGER).withSize(10)"),
    ("", "ofType(Types.INTEGER).withSize(10)"),
])
def test_integer_narrowed_by_column_definition(definition, expected):
    column = _column("java.lang.Integer", column_definition=definition)
    assert map_column_type(column).render() == expected


def test_decimal_defaults_to_precision_0_scale_2():
    column_type = map_column_type(_column("java.math.BigDecimal"))
    assert (column_type.size, column_type.digits) == (0, 2)
    assert column_type.render() == "ofType(Types.NUMERIC).withSize(0).withDigits(2)"


def test_decimal_uses_declared_precision_and_scale():
    column = _column("java.math.BigDecimal", precision=12, scale=4)
    assert map_column_type(column).render() == "ofType(Types.NUMERIC).withSize(12).withDigits(4)"


def test_unknown_type_falls_back_to_varchar():
    column = _column("com.example.Money", length=20)
    assert column.kind is ValueKind.OTHER
    assert map_column_type(column).render() == "ofType(Types.VARCHAR).withSize(20)"


def test_unknown_json_type_is_other_and_unbounded():
    column = _column("java.util.Map", json=True)
    assert map_column_type(column).render() == f"ofType(Types.OTHER).withSize({UNBOUNDED_SIZE})"


def test_not_null_suffix():
    column = _column("java.lang.Long", nullable=False)
    assert map_column_type(column).render() == "ofType(Types.BIGINT).withSize(19).notNull()"


@pytest.mark.parametrize("java_type", ["", "char", "byte[]", "java.util.List", "?"])
def test_mapping_is_total_and_deterministic(java_type):
    first = map_column_type(_column(java_type))
    second = map_column_type(_column(java_type))
    assert isinstance(first, ColumnType)
    assert first == second
    assert first.render() == second.render()
