import copy

from counsel_intake.models.extracted import dump_extracted, parse_extracted
from counsel_intake.services.merge import completion_percentage, merge_extracted, merge_trees


def _merge(existing: dict, incoming: dict) -> dict:
    return dump_extracted(merge_extracted(parse_extracted(existing), parse_extracted(incoming)))


def test_scalar_overwrite_keeps_siblings():
    existing = {"personalInfo": {"firstName": "old", "lastName": "Doe"}}
    out = _merge(existing, {"personalInfo": {"firstName": "x"}})
    assert out == {"personalInfo": {"firstName": "x", "lastName": "Doe"}}


def test_list_append_has_no_dedup():
    existing = {"immigrationInfo": {"children": [{"name": "A"}]}}
    fragment = {"immigrationInfo": {"children": [{"name": "B"}]}}

    once = _merge(existing, fragment)
    assert [c["name"] for c in once["immigrationInfo"]["children"]] == ["A", "B"]

    twice = _merge(once, fragment)
    assert [c["name"] for c in twice["immigrationInfo"]["children"]] == ["A", "B", "B"]


def test_null_and_empty_preserve_existing_value():
    existing = {"contactInfo": {"email": "x@y.com", "phone": "555-0100"}}
    out = _merge(existing, {"contactInfo": {"email": None, "phone": ""}})
    assert out["contactInfo"] == {"email": "x@y.com", "phone": "555-0100"}


def test_empty_list_does_not_wipe_existing_list():
    existing = {"criminalHistory": {"arrests": [{"charges": "DUI"}]}}
    out = _merge(existing, {"criminalHistory": {"arrests": []}})
    assert out["criminalHistory"]["arrests"] == [{"charges": "DUI"}]


def test_null_for_absent_key_is_inserted():
    out = _merge({"contactInfo": {"email": "x@y.com"}}, {"contactInfo": {"phone": None}})
    assert out["contactInfo"] == {"email": "x@y.com", "phone": None}


def test_nested_objects_recurse():
    existing = {"contactInfo": {"currentAddress": {"city": "Austin", "state": "TX"}}}
    out = _merge(existing, {"contactInfo": {"currentAddress": {"zipCode": "78701"}, "email": "a@b.co"}})
    assert out["contactInfo"] == {
        "currentAddress": {"city": "Austin", "state": "TX", "zipCode": "78701"},
        "email": "a@b.co",
    }


def test_inputs_are_not_mutated():
    existing = {"immigrationInfo": {"children": [{"name": "A"}]}, "personalInfo": {"firstName": "Ann"}}
    incoming = {"immigrationInfo": {"children": [{"name": "B"}]}, "personalInfo": {"lastName": "Lee"}}
    existing_copy, incoming_copy = copy.deepcopy(existing), copy.deepcopy(incoming)

    old_model = parse_extracted(existing)
    new_model = parse_extracted(incoming)
    merge_extracted(old_model, new_model)

    assert dump_extracted(old_model) == existing_copy
    assert dump_extracted(new_model) == incoming_copy


def test_merge_trees_returns_completion():
    tree, pct = merge_trees({}, {"personalInfo": {"firstName": "Ann", "lastName": None}})
    assert tree == {"personalInfo": {"firstName": "Ann", "lastName": None}}
    assert pct == 50


def test_numbers_coerced_for_string_fields():
    tree, _ = merge_trees(None, {"personalInfo": {"ssn": 123456789}, "contactInfo": {"phone": 5550100}})
    assert tree["personalInfo"]["ssn"] == "123456789"
    assert tree["contactInfo"]["phone"] == "5550100"


def test_invalid_field_dropped_rest_kept():
    tree = dump_extracted(parse_extracted({"personalInfo": {"annualIncome": "lots", "firstName": "Ann"}}))
    assert tree == {"personalInfo": {"firstName": "Ann"}}


def test_unknown_keys_ignored_and_non_object_is_empty():
    assert dump_extracted(parse_extracted({"favouriteColour": "blue"})) == {}
    assert dump_extracted(parse_extracted(["not", "an", "object"])) == {}
    assert dump_extracted(parse_extracted(None)) == {}


# ---------- completion ----------
def test_completion_four_of_ten():
    tree = {
        "personalInfo": {"firstName": "A", "lastName": "B", "dateOfBirth": None, "nationality": ""},
        "contactInfo": {"email": "a@b.c", "phone": None, "currentAddress": {"city": "X", "state": None}},
        "caseInfo": {"description": None, "previousLegalIssues": []},
    }
    assert completion_percentage(tree) == 40


def test_completion_empty_tree_is_zero():
    assert completion_percentage({}) == 0
    assert completion_percentage(None) == 0
    assert completion_percentage({"caseInfo": {}}) == 0


def test_completion_counts_list_as_one_leaf():
    assert completion_percentage({"immigrationInfo": {"children": [{"name": "A"}, {"name": "B"}]}}) == 100


def test_completion_rounds_half_up():
    # 1 of 8 -> 12.5
    tree = {"personalInfo": {"firstName": "A", **{k: None for k in "bcdefgh"}}}
    assert completion_percentage(tree) == 13
    # 2 of 3 -> 66.67
    assert completion_percentage({"a": 1, "b": "x", "c": None}) == 67
