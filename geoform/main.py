"""Command-line entrypoints for the address resolution engine."""
from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import List, Optional

import orjson

from geoform.form import LocationForm
from geoform.geocode.provider import create_geocoder
from geoform.location.composer import AddressParts, compose_address
from geoform.location.hierarchy import LocationHierarchyResolver, LocationLevel
from geoform.observability.log import configure_logging
from geoform.settings import DEFAULT_SETTINGS_PATH, GeoformSettings, resolve_settings

DEFAULT_LOGGING_PATH = Path("config/logging.yaml")

# (level, code option, name option)
_LEVEL_OPTIONS = [
    (LocationLevel.REGION, "region", "region_name"),
    (LocationLevel.PROVINCE, "province", "province_name"),
    (LocationLevel.CITY_OR_MUNICIPALITY, "city", "city_name"),
    (LocationLevel.BARANGAY, "barangay", "barangay_name"),
]


def _add_location_arguments(parser: argparse.ArgumentParser) -> None:
    for _, code_opt, name_opt in _LEVEL_OPTIONS:
        parser.add_argument(f"--{code_opt}", default="", help=f"{code_opt.capitalize()} code")
        parser.add_argument(f"--{name_opt.replace('_', '-')}", default="", help=f"{code_opt.capitalize()} display name")
    parser.add_argument("--building", default="", help="House or building number")
    parser.add_argument("--street", default="", help="Street name")
    parser.add_argument("--block-lot", default="", help="Purok, block or lot")
    parser.add_argument("--zip-code", default="", help="Zip code")


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="geoform", description="Address resolution and geocoding")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS_PATH), help="Path to settings.toml")
    parser.add_argument("--logging", default=str(DEFAULT_LOGGING_PATH), help="Path to logging.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    compose = sub.add_parser("compose", help="Print the composed address without geocoding")
    _add_location_arguments(compose)

    geocode = sub.add_parser("geocode", help="Resolve coordinates for an address")
    _add_location_arguments(geocode)
    geocode.add_argument("--metrics-out", help="Write counters to this JSON file")

    return parser


def _apply_hierarchy(args: argparse.Namespace, select) -> None:
    for level, code_opt, name_opt in _LEVEL_OPTIONS:
        code = getattr(args, code_opt)
        if not code:
            break
        select(level, code, getattr(args, name_opt) or code)


def _parts_from_args(args: argparse.Namespace) -> AddressParts:
    return AddressParts(
        building=args.building,
        street=args.street,
        block_lot=args.block_lot,
        zip_code=args.zip_code,
    )


def cmd_compose(args: argparse.Namespace) -> None:
    hierarchy = LocationHierarchyResolver()
    _apply_hierarchy(args, hierarchy.select)
    print(compose_address(hierarchy.current_selection(), _parts_from_args(args)))


async def run_geocode(args: argparse.Namespace, settings: GeoformSettings) -> LocationForm:
    """Drive one form through hierarchy selection, address entry and resolution."""
    async with create_geocoder(settings) as geocoder:
        form = LocationForm(geocoder, settings=settings)
        _apply_hierarchy(args, form.select)
        parts = _parts_from_args(args)
        form.update_parts(
            building=parts.building,
            street=parts.street,
            block_lot=parts.block_lot,
            zip_code=parts.zip_code,
        )
        await form.settle()
    attempt = form.last_attempt
    payload = {
        "address": form.composed_address,
        "status": form.coordinates.status.value,
        "attempt": {"status": attempt.status.value, "reason": attempt.reason} if attempt else None,
        "location": form.payload().model_dump(),
    }
    print(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
    if getattr(args, "metrics_out", None):
        form.metrics.export(
            path=Path(args.metrics_out),
            form_id=form.form_id,
            outcome={"address": payload["address"], "status": payload["status"], "attempt": payload["attempt"]},
        )
    return form


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(Path(args.logging))
    settings = resolve_settings(Path(args.settings))

    if args.command == "compose":
        cmd_compose(args)
        return

    if args.command == "geocode":
        asyncio.run(run_geocode(args, settings))


if __name__ == "__main__":
    main()
