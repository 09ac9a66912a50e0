import pytest

from dib.strutil import convert_kv_strings_to_map, dedupe_str_slice


@pytest.mark.parametrize(
    "values, expected",
    [
        (["a", "b", "c"], ["a", "b", "c"]),
        (["a", "b", "a", "c", "b"], ["a", "b", "c"]),
        (["a", "a", "a"], ["a"]),
        (["", "a", "", "b", "a"], ["", "a", "b"]),
        (["a", "A", "b", "B", "a"], ["a", "A", "b", "B"]),
        ([" ", "!", "@", "!", " "], [" ", "!", "@"]),
    ],
    ids=[
        "no duplicates",
        "duplicates in input",
        "all duplicates",
        "mixed empty and non-empty",
        "case-sensitive",
        "special characters and spaces",
    ],
)
def test_dedupe_str_slice(values, expected):
    assert dedupe_str_slice(values) == expected


@pytest.mark.parametrize(
    "values, expected",
    [
        (["key=value"], {"key": "value"}),
        (
            ["name=John", "age=30", "city=Paris"],
            {"name": "John", "age": "30", "city": "Paris"},
        ),
        (["keyWithoutValue"], {"keyWithoutValue": ""}),
        ([""], {"": ""}),
        (["data=this=is=value"], {"data": "this=is=value"}),
        ([], {}),
    ],
    ids=[
        "single pair",
        "multiple pairs",
        "no equals sign",
        "empty string",
        "value containing equals",
        "empty input",
    ],
)
def test_convert_kv_strings_to_map(values, expected):
    assert convert_kv_strings_to_map(values) == expected


def test_dedupe_accepts_generators():
    assert dedupe_str_slice(s for s in ["x", "y", "x"]) == ["x", "y"]