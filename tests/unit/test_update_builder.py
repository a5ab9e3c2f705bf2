from __future__ import annotations

import pytest

from kvtable import Condition, ReturnValues, UnsupportedTypeError, UpdateBuilder, ValidationError, build_update
from kvtable.update_builder import ExpressionPlaceholders


def _builder() -> UpdateBuilder:
    return UpdateBuilder("ProductCatalog", {"Id": 201}, key_fields=["Id"])


def test_conditional_price_update() -> None:
    req = _builder().set("Price", 22).condition("Price", "=", 20).build()

    assert req.table_name == "ProductCatalog"
    assert req.key == {"Id": {"N": "201"}}
    assert req.update_expression == "SET #n0 = :v0"
    assert req.condition_expression == "#n0 = :v1"
    assert req.expression_attribute_names == {"#n0": "Price"}
    assert req.expression_attribute_values == {":v0": {"N": "22"}, ":v1": {"N": "20"}}


def test_multiple_operations_group_into_clauses() -> None:
    req = (
        _builder()
        .add("Authors", {"Author YY", "Author ZZ"})
        .set("NewAttribute", "New Value")
        .remove("ISBN")
        .return_values(ReturnValues.ALL_NEW)
        .build()
    )

    assert req.update_expression == "SET #n1 = :v1 REMOVE #n2 ADD #n0 :v0"
    assert req.expression_attribute_names == {"#n0": "Authors", "#n1": "NewAttribute", "#n2": "ISBN"}
    assert req.expression_attribute_values == {
        ":v0": {"SS": ["Author YY", "Author ZZ"]},
        ":v1": {"S": "New Value"},
    }
    assert req.condition_expression is None
    assert req.to_params()["ReturnValues"] == "ALL_NEW"


def test_field_used_twice_gets_one_name_placeholder() -> None:
    req = _builder().set("Views", 1).remove("Views").condition_exists("Views").build()

    assert req.update_expression == "SET #n0 = :v0 REMOVE #n0"
    assert req.condition_expression == "attribute_exists(#n0)"
    assert req.expression_attribute_names == {"#n0": "Views"}


def test_equal_values_share_one_value_placeholder() -> None:
    req = _builder().set("Price", 20).set("ListPrice", 20).condition("Price", "=", 20).build()

    assert req.update_expression == "SET #n0 = :v0, #n1 = :v0"
    assert req.condition_expression == "#n0 = :v0"
    assert req.expression_attribute_values == {":v0": {"N": "20"}}


def test_remaining_update_operations() -> None:
    req = (
        _builder()
        .set_if_not_exists("Views", 0)
        .append_to_list("History", ["created"])
        .increment("Reads")
        .delete("Color", {"Red"})
        .build()
    )

    assert req.update_expression == (
        "SET #n0 = if_not_exists(#n0, :v0), #n1 = list_append(#n1, :v1) ADD #n2 :v2 DELETE #n3 :v3"
    )
    assert req.expression_attribute_values == {
        ":v0": {"N": "0"},
        ":v1": {"L": [{"S": "created"}]},
        ":v2": {"N": "1"},
        ":v3": {"SS": ["Red"]},
    }


def test_condition_operators() -> None:
    req = (
        _builder()
        .set("Price", 25)
        .condition("Price", "BETWEEN", (10, 30))
        .or_condition("Title", "BEGINS_WITH", "Book")
        .condition("ProductCategory", "IN", ["Book", "Bike"])
        .condition("Color", "CONTAINS", "Red")
        .condition("Price", "<>", 0)
        .condition_not_exists("Discontinued")
        .build()
    )

    assert req.condition_expression == (
        "#n0 BETWEEN :v1 AND :v2 OR begins_with(#n1, :v3) AND #n2 IN (:v3, :v4) "
        "AND contains(#n3, :v5) AND #n0 <> :v6 AND attribute_not_exists(#n4)"
    )


def test_update_request_params_omit_empty_sections() -> None:
    params = _builder().remove("ISBN").build().to_params()

    assert params == {
        "TableName": "ProductCatalog",
        "Key": {"Id": {"N": "201"}},
        "UpdateExpression": "REMOVE #n0",
        "ExpressionAttributeNames": {"#n0": "ISBN"},
        "ReturnValues": "NONE",
    }


def test_build_update_function() -> None:
    req = build_update(
        "ProductCatalog",
        {"Id": 201},
        set_ops={"Price": 22},
        add_ops={"Views": 1},
        remove_ops=["ISBN"],
        condition=Condition.equals("Price", 20),
        return_values=ReturnValues.UPDATED_NEW,
        key_fields=["Id"],
    )

    assert req.update_expression == "SET #n0 = :v0 REMOVE #n2 ADD #n1 :v1"
    assert req.condition_expression == "#n0 = :v2"
    assert req.return_values is ReturnValues.UPDATED_NEW


@pytest.mark.parametrize(
    ("build", "match"),
    [
        (lambda b: b, "no updates provided"),
        (lambda b: b.set("Id", 5), "cannot update key field: Id"),
        (lambda b: b.remove("Id"), "cannot update key field: Id"),
        (lambda b: b.add("Title", "x"), "ADD requires a number or a set of values"),
        (lambda b: b.add("Authors", set()), "at least one element"),
        (lambda b: b.set("Price", 1).condition("Price", "="), "= requires one value"),
        (lambda b: b.set("Price", 1).condition("Price", "BETWEEN", (1,)), "BETWEEN requires two values"),
        (lambda b: b.set("Price", 1).condition("Price", "IN", "abc"), "IN requires a sequence of values"),
        (lambda b: b.set("Price", 1).condition("Price", "IN", list(range(101))), "maximum 100 values"),
        (lambda b: b.set("Price", 1).condition("Price", "EXISTS", 1), "EXISTS does not take a value"),
        (lambda b: b.set("Price", 1).condition("Price", "LIKE", 1), "unsupported condition operator"),
        (
            lambda b: b.set("Price", 1).where(Condition.exists("Price")).where(Condition("Id", "=", 1, "XOR")),
            "unsupported condition logic",
        ),
    ],
)
def test_build_rejects_invalid_updates(build: object, match: str) -> None:
    with pytest.raises(ValidationError, match=match):
        build(_builder()).build()  # type: ignore[operator]


def test_builder_requires_key_and_table() -> None:
    with pytest.raises(ValidationError, match="table_name is required"):
        UpdateBuilder("", {"Id": 1})
    with pytest.raises(ValidationError, match="key is missing fields"):
        UpdateBuilder("ProductCatalog", {"Title": "x"}, key_fields=["Id"]).set("Price", 1).build()
    with pytest.raises(ValidationError, match="unsupported return values option"):
        _builder().return_values("EVERYTHING")
    with pytest.raises(ValidationError, match="not bound to a table"):
        _builder().set("Price", 1).execute()


def test_placeholders_render_conditions_with_shared_references() -> None:
    refs = ExpressionPlaceholders()
    assert refs.name("Price") == "#n0"
    assert refs.value(20) == ":v0"

    assert refs.condition(Condition("Price", "BETWEEN", (10, 20))) == "#n0 BETWEEN :v1 AND :v0"
    assert refs.condition(Condition("Title", "begins_with", "Book")) == "begins_with(#n1, :v2)"
    assert refs.condition(Condition.not_exists("ISBN")) == "attribute_not_exists(#n2)"
    assert refs.condition(Condition("Price", "IN", [20, 22])) == "#n0 IN (:v0, :v3)"

    assert refs.names() == {"#n0": "Price", "#n1": "Title", "#n2": "ISBN"}
    assert refs.values() == {":v0": {"N": "20"}, ":v1": {"N": "10"}, ":v2": {"S": "Book"}, ":v3": {"N": "22"}}


def test_placeholders_reject_malformed_conditions() -> None:
    refs = ExpressionPlaceholders()
    with pytest.raises(ValidationError, match="does not take a value"):
        refs.condition(Condition("Price", "exists", 1))
    with pytest.raises(ValidationError, match="BETWEEN requires two values"):
        refs.condition(Condition("Price", "BETWEEN", 1))
    with pytest.raises(ValidationError, match="unsupported condition operator"):
        refs.condition(Condition("Price", "LIKE", 1))


def test_add_rejects_floats() -> None:
    with pytest.raises(ValidationError, match="ADD requires a number or a set of values"):
        _builder().add("Price", 1.5).build()


def test_set_rejects_floats() -> None:
    with pytest.raises(UnsupportedTypeError, match="Float types are not supported"):
        _builder().set("Price", 1.5).build()
