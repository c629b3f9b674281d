import pytest

from storefront.utils.json_repair import extract_json_object, repair_json_text


def test_extracts_object_from_code_fence_with_prose() -> None:
    text = 'Sure! Here it is:\n```json\n{"category": "laptop", "maxPrice": 20000}\n```'
    assert extract_json_object(text) == {"category": "laptop", "maxPrice": 20000}


def test_repairs_trailing_commas_and_bare_keys() -> None:
    assert extract_json_object('{category: "watch", maxPrice: 500,}') == {
        "category": "watch",
        "maxPrice": 500,
    }
    assert repair_json_text('{"a": [1, 2,],}') == '{"a": [1, 2]}'


def test_first_object_wins_when_followed_by_text() -> None:
    assert extract_json_object('{"a": 1} and then {"b": 2}') == {"a": 1}


@pytest.mark.parametrize("text", ["", "no json here", "[1, 2, 3]", "{not: valid: json"])
def test_raises_value_error_when_no_object(text: str) -> None:
    with pytest.raises(ValueError):
        extract_json_object(text)
