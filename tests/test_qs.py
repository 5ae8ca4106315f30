import math

from formbody._internal._qs import merge, parse


def test_empty_string():
    assert parse("") == {}


def test_flat_values():
    assert parse("a=1&b=2") == {"a": "1", "b": "2"}


def test_decodes_plus_and_percent():
    assert parse("name=Jane+Doe&city=S%C3%A3o%20Paulo") == {
        "name": "Jane Doe",
        "city": "São Paulo",
    }


def test_key_without_value():
    assert parse("a&b=") == {"a": "", "b": ""}


def test_duplicates_accumulate():
    assert parse("a=1&a=2&a=3") == {"a": ["1", "2", "3"]}


def test_nested_objects():
    assert parse("a[b]=1&a[c]=2") == {"a": {"b": "1", "c": "2"}}
    assert parse("a[b][c][d]=e") == {"a": {"b": {"c": {"d": "e"}}}}


def test_empty_brackets_build_lists():
    assert parse("a[]=1&a[]=2") == {"a": ["1", "2"]}
    assert parse("a[]=1") == {"a": ["1"]}


def test_indices_build_lists_in_order():
    assert parse("a[1]=c&a[0]=b") == {"a": ["b", "c"]}
    assert parse("a[2]=c") == {"a": ["c"]}


def test_indices_over_array_limit_become_keys():
    assert parse("a[21]=x", array_limit=20) == {"a": {"21": "x"}}
    assert parse("a[21]=x", array_limit=100) == {"a": ["x"]}


def test_non_canonical_indices_are_keys():
    assert parse("a[01]=x") == {"a": {"01": "x"}}


def test_list_and_object_merge():
    assert parse("a[]=b&a[c]=d") == {"a": {"0": "b", "c": "d"}}


def test_scalar_and_object_merge():
    assert parse("a[b]=c&a=d") == {"a": {"b": "c", "d": True}}


def test_objects_in_lists():
    assert parse("a[0][b]=c&a[0][d]=e") == {"a": [{"b": "c", "d": "e"}]}


def test_depth_limit_keeps_the_rest_as_one_key():
    assert parse("a[b][c][d]=e", depth=1) == {"a": {"b": {"[c][d]": "e"}}}
    assert parse("a[b][c]=d", depth=0) == {"a[b][c]": "d"}


def test_unlimited_depth():
    key = "a" + "[b]" * 50
    value = parse(f"{key}=x", depth=math.inf)

    for _ in range(51):
        value = value.get("a", value.get("b"))
    assert value == "x"


def test_parameter_limit_ignores_extra_pairs():
    assert parse("a=1&b=2&c=3", parameter_limit=2) == {"a": "1", "b": "2"}


def test_dict_attribute_names_need_allow_prototypes():
    assert parse("items=1&a[keys]=2") == {}
    assert parse("items=1&a[keys]=2", allow_prototypes=True) == {
        "items": "1",
        "a": {"keys": "2"},
    }


def test_dots():
    assert parse("a.b=c") == {"a.b": "c"}
    assert parse("a.b=c&a.d=e", allow_dots=True) == {"a": {"b": "c", "d": "e"}}


def test_pairs_split_at_the_first_equals_sign():
    assert parse("a[=]=b") == {"a[": "]=b"}
    assert parse("a=b=c") == {"a": "b=c"}


def test_semicolon_after_the_last_ampersand_separates_pairs():
    assert parse("a=1;b=2") == {"a": "1", "b": "2"}
    assert parse("a=1;x&b=2") == {"a": "1;x", "b": "2"}


def test_empty_pairs_are_skipped():
    assert parse("a=1&&b=2&") == {"a": "1", "b": "2"}


def test_large_index_within_array_limit():
    assert parse("a[999999]=x", array_limit=math.inf) == {"a": ["x"]}


def test_index_and_append_merge_in_index_order():
    assert parse("a[5]=x&a[]=y") == {"a": ["y", "x"]}
    assert parse("a[0]=x&a[0]=y") == {"a": ["x", "y"]}


def test_index_lists_never_leak_into_the_result():
    value = parse("a[2][b][1]=x&c=d")

    assert value == {"a": [{"b": ["x"]}], "c": "d"}
    assert type(value["a"]) is list
    assert type(value["a"][0]["b"]) is list


def test_merge_scalars_into_list():
    assert merge("a", "b") == ["a", "b"]
    assert merge(["a"], "b") == ["a", "b"]
    assert merge("a", ["b", "c"]) == ["a", "b", "c"]
    assert merge({"a": "b"}, "") == {"a": "b"}
