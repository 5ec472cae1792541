# This module is the command line entrypoint for the occupancy pricing engine.
# It exists so operators can generate rules, dry-run imports, and push approved imports without the API.
# Each subcommand prints one JSON document on stdout and signals blocking problems through the exit code.
# Imports that are approved or rejected are persisted through the price list store.

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from src.common.db import get_engine
from src.common.logging import configure_logging
from src.occupancy_pricing.errors import ImportValidationError, PricingEngineError
from src.occupancy_pricing.format_parsers import build_parser_registry, detect_file_type
from src.occupancy_pricing.import_checks import normalize_import_preview
from src.occupancy_pricing.import_gate import ImportSession
from src.occupancy_pricing.models import RoomTypeDescriptor
from src.occupancy_pricing.price_list import price_list_from_document
from src.occupancy_pricing.price_list_store import PriceListStore
from src.occupancy_pricing.pricing_config import PricingEngineConfig, load_engine_config
from src.occupancy_pricing.rule_generator import build_room_type_pricing

LOGGER = logging.getLogger("occupancy_pricing")

EXIT_OK = 0
EXIT_VALIDATION_ERRORS = 1
EXIT_FAILURE = 2


def _read_json(path: str) -> dict[str, Any]:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return payload


def run_generate(
    *,
    room_type_path: str,
    price_list_path: str | None,
    include_permutations: bool | None,
    config: PricingEngineConfig,
) -> dict[str, Any]:
    room_type = RoomTypeDescriptor.from_dict(_read_json(room_type_path))
    categories = config.default_person_categories
    previous = None
    if price_list_path:
        price_list = price_list_from_document(_read_json(price_list_path))
        categories = price_list.person_categories
        previous = price_list.room_type_block(room_type.room_type_id)

    include = config.include_permutations_default if include_permutations is None else include_permutations
    block = build_room_type_pricing(room_type, categories, include, previous=previous, config=config)
    return {"status": "succeeded", "include_permutations": include, "room_type_pricing": block.to_dict()}


def run_validate_import(
    *,
    file_path: str,
    known_room_type_ids: Sequence[str] | None,
    config: PricingEngineConfig,
) -> dict[str, Any]:
    path = Path(file_path)
    file_type = detect_file_type(path.name)
    parser = build_parser_registry()[file_type]
    preview = parser.parse(path.read_bytes(), file_type, file_name=path.name)
    normalized = normalize_import_preview(
        preview,
        known_room_type_ids=known_room_type_ids,
        decimals=config.price_decimals,
    )
    return {
        "status": "failed" if normalized.errors else "succeeded",
        "file_type": file_type.value,
        "preview": normalized.to_dict(),
    }


def run_import(
    *,
    file_path: str,
    price_list_id: str,
    approve: bool,
    reject_reason: str | None,
    known_room_type_ids: Sequence[str] | None,
    store: PriceListStore,
    config: PricingEngineConfig,
) -> dict[str, Any]:
    path = Path(file_path)
    price_list = store.load(price_list_id)
    session = ImportSession(
        price_list,
        known_room_type_ids=known_room_type_ids,
        config=config,
    )
    preview = session.import_file(path.read_bytes(), file_name=path.name)

    if approve:
        updated = session.approve(persist=store.save)
    elif reject_reason is not None:
        updated = session.reject(reject_reason, persist=store.save)
    else:
        return {"status": "pending", "state": session.state.value, "preview": preview.to_dict()}

    return {
        "status": "succeeded",
        "state": session.state.value,
        "price_list": updated.to_dict(),
        "warnings": list(preview.warnings),
    }


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Occupancy pricing engine")
    parser.add_argument("--config-path", type=str, default="configs/occupancy_pricing.yaml")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Generate pricing rules for one room type")
    generate.add_argument("--room-type", required=True, help="JSON room type descriptor")
    generate.add_argument("--price-list", default=None, help="JSON price list to carry edits forward from")
    generate.add_argument("--include-permutations", action="store_true", default=None)

    validate = subparsers.add_parser("validate-import", help="Parse and validate an import file without merging")
    validate.add_argument("--file", required=True)
    validate.add_argument("--known-room-type", action="append", default=None)

    run = subparsers.add_parser("import", help="Import a file into a stored price list")
    run.add_argument("--file", required=True)
    run.add_argument("--price-list-id", required=True)
    run.add_argument("--known-room-type", action="append", default=None)
    decision = run.add_mutually_exclusive_group()
    decision.add_argument("--approve", action="store_true")
    decision.add_argument("--reject", type=str, default=None, metavar="REASON")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging()

    exit_code = EXIT_OK
    try:
        config = load_engine_config(config_path=args.config_path)
        if args.command == "generate":
            result = run_generate(
                room_type_path=args.room_type,
                price_list_path=args.price_list,
                include_permutations=args.include_permutations,
                config=config,
            )
        elif args.command == "validate-import":
            result = run_validate_import(
                file_path=args.file,
                known_room_type_ids=args.known_room_type,
                config=config,
            )
            if result["status"] == "failed":
                exit_code = EXIT_VALIDATION_ERRORS
        else:
            store = PriceListStore(get_engine(), table_name=config.price_list_table_name)
            store.create_table()
            result = run_import(
                file_path=args.file,
                price_list_id=args.price_list_id,
                approve=args.approve,
                reject_reason=args.reject,
                known_room_type_ids=args.known_room_type,
                store=store,
                config=config,
            )
    except ImportValidationError as exc:
        LOGGER.warning("import blocked: %s", exc)
        result = {"status": "failed", "error": str(exc), "errors": exc.errors}
        exit_code = EXIT_VALIDATION_ERRORS
    except PricingEngineError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        result = {"status": "failed", "error": str(exc), "details": exc.details}
        exit_code = EXIT_FAILURE
    except KeyError as exc:
        LOGGER.error("%s failed: missing field %s", args.command, exc)
        result = {"status": "failed", "error": f"Missing required field {exc.args[0]!r}", "details": {}}
        exit_code = EXIT_FAILURE
    except (OSError, TypeError, ValueError) as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        result = {"status": "failed", "error": str(exc), "details": {"error_type": type(exc).__name__}}
        exit_code = EXIT_FAILURE

    print(json.dumps(result, indent=2, default=str))
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
