# This test file validates the command line entrypoint end to end.
# It exists so each subcommand prints a single JSON document and signals problems through its exit code.
# Store-backed commands run against a throwaway SQLite database.

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine

from src.occupancy_pricing import pricing_orchestrator
from src.occupancy_pricing.models import ValidationStatus
from src.occupancy_pricing.price_list import create_price_list
from src.occupancy_pricing.price_list_store import PriceListStore

ROOM_TYPE = {
    "roomTypeId": "dbl",
    "roomTypeName": "Double",
    "minOccupancy": 1,
    "maxOccupancy": 2,
    "maxAdults": 2,
    "maxChildren": 1,
    "basicBeds": 2,
}


def _upload(code: str) -> dict[str, object]:
    return {
        "personCategories": [
            {"code": "ADL", "label": "Adults", "ageFrom": 18, "ageTo": 99},
            {"code": "CHD1", "label": "Children 2-7", "ageFrom": 2, "ageTo": 7},
        ],
        "roomTypePricing": [
            {
                "roomTypeId": "dbl",
                "roomTypeName": "Double",
                "pricingRules": [
                    {
                        "id": "r1",
                        "bedAssignment": [
                            {"bedType": "basic", "bedIndex": 0, "personCategory": "ADL"},
                            {"bedType": "basic", "bedIndex": 1, "personCategory": code},
                        ],
                        "basePrice": 90,
                        "finalPrice": 90,
                    }
                ],
            }
        ],
    }


def _write_json(path: Path, payload: dict[str, object]) -> str:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_generate_prints_room_type_pricing(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    room_type_path = _write_json(tmp_path / "room.json", ROOM_TYPE)

    exit_code = pricing_orchestrator.main(["generate", "--room-type", room_type_path])

    output = json.loads(capsys.readouterr().out)
    assert exit_code == pricing_orchestrator.EXIT_OK
    assert output["status"] == "succeeded"
    assert output["include_permutations"] is False
    rules = output["room_type_pricing"]["pricingRules"]
    assert [rule["bedAssignment"][0]["personCategory"] for rule in rules][0] == "ADL"
    assert all(rule["isActive"] for rule in rules)


def test_generate_reports_configuration_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    room_type_path = _write_json(tmp_path / "room.json", {**ROOM_TYPE, "minOccupancy": 3})

    exit_code = pricing_orchestrator.main(["generate", "--room-type", room_type_path])

    output = json.loads(capsys.readouterr().out)
    assert exit_code == pricing_orchestrator.EXIT_FAILURE
    assert output["status"] == "failed"


def test_validate_import_flags_undefined_categories(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    good_path = _write_json(tmp_path / "good.json", _upload("CHD1"))
    bad_path = _write_json(tmp_path / "bad.json", _upload("CHD9"))

    assert pricing_orchestrator.main(["validate-import", "--file", good_path]) == pricing_orchestrator.EXIT_OK
    good = json.loads(capsys.readouterr().out)
    assert good["status"] == "succeeded"
    assert good["file_type"] == "json"

    assert pricing_orchestrator.main(["validate-import", "--file", bad_path]) == pricing_orchestrator.EXIT_VALIDATION_ERRORS
    bad = json.loads(capsys.readouterr().out)
    assert any("CHD9" in error for error in bad["preview"]["errors"])


def test_import_approves_into_store(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'prices.db'}")
    store = PriceListStore(engine)
    store.create_table()
    store.save(
        create_price_list(
            property_id="hotel-1",
            valid_from=date(2026, 5, 1),
            valid_to=date(2026, 10, 1),
            price_list_id="pricelist_cli",
        )
    )
    monkeypatch.setattr(pricing_orchestrator, "get_engine", lambda: engine)
    bad_path = _write_json(tmp_path / "bad.json", _upload("CHD9"))
    good_path = _write_json(tmp_path / "good.json", _upload("CHD1"))

    blocked = pricing_orchestrator.main(["import", "--file", bad_path, "--price-list-id", "pricelist_cli", "--approve"])
    blocked_output = json.loads(capsys.readouterr().out)
    assert blocked == pricing_orchestrator.EXIT_VALIDATION_ERRORS
    assert blocked_output["errors"]
    assert store.load("pricelist_cli").room_type_pricing == ()

    approved = pricing_orchestrator.main(["import", "--file", good_path, "--price-list-id", "pricelist_cli", "--approve"])
    approved_output = json.loads(capsys.readouterr().out)
    assert approved == pricing_orchestrator.EXIT_OK
    assert approved_output["state"] == "approved"
    stored = store.load("pricelist_cli")
    assert stored.validation_status == ValidationStatus.APPROVED
    assert stored.import_source is not None
    assert stored.import_source.file_name == "good.json"


def test_import_flags_are_mutually_exclusive() -> None:
    with pytest.raises(SystemExit):
        pricing_orchestrator.parse_args(
            ["import", "--file", "x.json", "--price-list-id", "p", "--approve", "--reject", "no"]
        )


def test_generate_reports_missing_descriptor_field(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    incomplete = {key: value for key, value in ROOM_TYPE.items() if key != "maxAdults"}
    room_type_path = _write_json(tmp_path / "room.json", incomplete)

    exit_code = pricing_orchestrator.main(["generate", "--room-type", room_type_path])
    output = json.loads(capsys.readouterr().out)

    assert exit_code == pricing_orchestrator.EXIT_FAILURE
    assert output["status"] == "failed"
    assert "maxAdults" in output["error"]


def test_generate_reports_unreadable_inputs(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    missing = pricing_orchestrator.main(["generate", "--room-type", str(tmp_path / "absent.json")])
    missing_output = json.loads(capsys.readouterr().out)
    assert missing == pricing_orchestrator.EXIT_FAILURE
    assert missing_output["details"]["error_type"] == "FileNotFoundError"

    broken_path = tmp_path / "broken.json"
    broken_path.write_text("{not json", encoding="utf-8")
    broken = pricing_orchestrator.main(["generate", "--room-type", str(broken_path)])
    broken_output = json.loads(capsys.readouterr().out)
    assert broken == pricing_orchestrator.EXIT_FAILURE
    assert broken_output["details"]["error_type"] == "JSONDecodeError"
