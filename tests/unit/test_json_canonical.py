import json

import pytest

from ratings_archive.common.errors import DocumentParseError, SchemaViolation
from ratings_archive.pipeline.json_canonical import canonicalize_json, sort_establishments


def _establishment(fhrsid, **extra) -> dict:
    record = {
        "FHRSID": fhrsid,
        "LocalAuthorityBusinessID": f"PI/{fhrsid}",
        "BusinessName": f"Business {fhrsid}",
        "BusinessType": "Retailers - other",
        "RatingValue": "Exempt",
        "RatingKey": "fhrs_exempt_en-GB",
        "RatingDate": None,
        "Scores": None,
        "SchemeType": "FHRS",
        "Geocode": None,
    }
    record.update(extra)
    return record


def _raw(*establishments: dict, **header_extra) -> str:
    header = {"ExtractDate": "2024-05-01", "ItemCount": len(establishments), "ReturnCode": "Success", **header_extra}
    return json.dumps({"FHRSEstablishment": {"Header": header, "EstablishmentCollection": list(establishments)}})


def test_exact_line_layout():
    raw = _raw(_establishment(20), _establishment(3))

    lines = canonicalize_json(raw).split("\n")

    assert lines[0] == '{"FHRSEstablishment":{'
    assert lines[1].startswith('"Header":{"ExtractDate":"2024-05-01"')
    assert lines[2] == '"EstablishmentCollection":['
    assert lines[3].startswith('{"FHRSID":3,') and lines[3].endswith("},")
    assert lines[4].startswith('{"FHRSID":20,') and lines[4].endswith("}")
    assert lines[5] == "]}}"
    assert len(lines) == 6


def test_empty_collection_closes_on_its_own_line():
    assert canonicalize_json(_raw()).endswith('"EstablishmentCollection":[\n]}}')


def test_unknown_fields_and_key_order_are_preserved():
    raw = _raw(_establishment(2, RightToReply="Fixed", NewRatingPending=False), _establishment(1), **{"#text": ""})

    payload = json.loads(canonicalize_json(raw))

    body = payload["FHRSEstablishment"]
    assert body["Header"]["#text"] == ""
    second = body["EstablishmentCollection"][1]
    assert second["RightToReply"] == "Fixed"
    assert list(second) == list(_establishment(2, RightToReply="Fixed", NewRatingPending=False))


def test_non_ascii_is_written_verbatim():
    text = canonicalize_json(_raw(_establishment(1, BusinessName="Caffi'r Hafan é")))
    assert "Caffi'r Hafan é" in text


def test_escaped_quotes_do_not_split_lines():
    tricky = '{"FHRSID": "Header": fake'
    text = canonicalize_json(_raw(_establishment(1, BusinessName=tricky)))
    assert len(text.split("\n")) == 5
    assert json.loads(text)["FHRSEstablishment"]["EstablishmentCollection"][0]["BusinessName"] == tricky


def test_output_is_idempotent():
    once = canonicalize_json(_raw(_establishment(9), _establishment(4), _establishment(7)))
    assert canonicalize_json(once) == once


def test_schema_violation_is_raised_before_rewrite():
    with pytest.raises(SchemaViolation):
        canonicalize_json(_raw(_establishment(1, RatingKey="fhrs_5_en-GB")))


def test_unparseable_text_raises_parse_error():
    with pytest.raises(DocumentParseError):
        canonicalize_json("<FHRSEstablishment/>")


def test_sort_establishments_orders_in_place():
    payload = json.loads(_raw(_establishment(10), _establishment(9)))
    assert sort_establishments(payload) is payload
    assert [e["FHRSID"] for e in payload["FHRSEstablishment"]["EstablishmentCollection"]] == [9, 10]
