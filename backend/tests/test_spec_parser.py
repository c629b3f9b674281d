from storefront.services.catalog.spec_parser import parse_specifications


def test_empty_blob_is_none() -> None:
    assert parse_specifications(None) is None
    assert parse_specifications("   ") is None


def test_json_blob_is_returned_as_dict() -> None:
    assert parse_specifications('{"color": "red"}') == {"color": "red"}


def test_ruby_hash_blob_is_normalized() -> None:
    raw = (
        '{"product_specification"=>[{"key"=>"Type", "value"=>"Analog"}, '
        '{"value"=>"Water resistant"}]}'
    )
    assert parse_specifications(raw) == {
        "product_specification": [
            {"key": "Type", "value": "Analog"},
            {"value": "Water resistant"},
        ]
    }


def test_broken_ruby_hash_falls_back_to_item_extraction() -> None:
    raw = '{"product_specification"=>[{"key"=>"Fabric", "value"=>"Cotton"}, {"key"=>"Fit" "value"=>"Slim"}]}'
    parsed = parse_specifications(raw)
    assert parsed is not None
    assert {"key": "Fabric", "value": "Cotton"} in parsed["product_specification"]


def test_unparseable_blob_is_kept_raw() -> None:
    assert parse_specifications("just some words") == {"raw": "just some words"}
    assert parse_specifications("[1, 2]") == {"raw": "[1, 2]"}
