from decimal import Decimal

import pytest

from sql_exporter.core.database import ColumnKind
from sql_exporter.normalizer import (
    NormalizationError,
    collect_observations,
    normalize_label_value,
    normalize_result,
)
from tests.conftest import FakeConnection, make_result, make_tenant


def test_label_value_normalization():
    assert normalize_label_value("Data Center") == "data_center"
    assert normalize_label_value("data_center") == "data_center"
    assert normalize_label_value("  Two   Spaces\tand tab ") == "two_spaces_and_tab"


def test_rows_become_observations():
    tenant = make_tenant(name="HXE", usage="Production")
    result = make_result(
        ["VALUE", "Host", "Port"],
        [(Decimal("1.5"), "Host One", 30015), (2, "host2", 30040)],
        kinds=[ColumnKind.NUMERIC, ColumnKind.TEXTUAL, ColumnKind.NUMERIC],
    )

    observations = normalize_result(tenant, result)

    assert [o.value for o in observations] == [1.5, 2.0]
    assert observations[0].labels == ["tenant", "usage", "host", "port"]
    assert observations[0].label_values == ["hxe", "production", "host_one", "30015"]
    assert observations[1].label_values == ["hxe", "production", "host2", "30040"]


def test_single_value_column_only_has_fixed_labels():
    observations = normalize_result(make_tenant(), make_result(["v"], [(7,)]))

    assert observations[0].labels == ["tenant", "usage"]
    assert observations[0].value == 7.0


def test_empty_result_gives_no_observations():
    assert normalize_result(make_tenant(), make_result(["v", "name"], [])) == []


def test_zero_columns_is_an_error():
    with pytest.raises(NormalizationError, match="no columns"):
        normalize_result(make_tenant(), make_result([], [], kinds=[]))


@pytest.mark.parametrize(
    "kind", [ColumnKind.TEXTUAL, ColumnKind.BOOLEAN, ColumnKind.UNKNOWN]
)
def test_first_column_must_be_numeric(kind):
    result = make_result(["v"], [(1,)], kinds=[kind])

    with pytest.raises(NormalizationError, match="must be numeric"):
        normalize_result(make_tenant(), result)


def test_null_in_any_row_discards_everything():
    result = make_result(["v", "name"], [(1.0, "first"), (2.0, None)])

    with pytest.raises(NormalizationError, match="NULL"):
        normalize_result(make_tenant(), result)


def test_unparseable_value_discards_everything():
    result = make_result(
        ["v"], [(1,), ("not a number",)], kinds=[ColumnKind.OTHER]
    )

    with pytest.raises(NormalizationError, match="float"):
        normalize_result(make_tenant(), result)


def test_collect_observations_queries_the_tenant():
    statement = "select value, name from app.t"
    connection = FakeConnection({statement: make_result(["value", "name"], [(1.5, "Foo Bar")])})
    tenant = make_tenant(connection=connection)

    observations = collect_observations(tenant, statement)

    assert connection.statements == [statement]
    assert observations[0].label_values[-1] == "foo_bar"


@pytest.mark.parametrize(
    "columns",
    [
        ["v", "tenant"],
        ["v", "USAGE"],
        ["v", "host", "HOST"],
    ],
)
def test_duplicate_label_names_are_rejected(columns):
    result = make_result(columns, [(1, *("x" for _ in columns[1:]))])

    with pytest.raises(NormalizationError, match="duplicate label name"):
        normalize_result(make_tenant(), result)


@pytest.mark.parametrize("column", ["COUNT(*)", "1st", "host name", "__reserved"])
def test_invalid_label_names_are_rejected(column):
    result = make_result(["v", column], [(1, "x")])

    with pytest.raises(NormalizationError, match="invalid label name"):
        normalize_result(make_tenant(), result)
