r"""Generate a typed Python client from the model reference service's OpenAPI schema.

The schema's SCREAMING_CASE enum names (e.g. `MODEL_REFERENCE_CATEGORY`) are passed to the
generator as identity model name mappings so the generated classes keep those exact names.

The output directory must contain a `.generated` marker file, which guards against generating
into the wrong directory. Pass --force to generate anyway.

Usage:
    generate-api-client [--url URL | --local] [--force] [--output-dir DIR] [--schema-path FILE]

Examples:
    # Fetch the schema from a local service and regenerate the client
    generate-api-client

    # Regenerate from the schema saved by a previous run
    generate-api-client --local

    # Fetch from another service
    generate-api-client --url https://models.aihorde.net/api/openapi.json

Requires `openapi-generator-cli` on PATH. `ruff` is used to format the output when available.
"""

from __future__ import annotations

import argparse
import json
import re
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from horde_model_reference_console.logging_config import configure_logger

DEFAULT_SCHEMA_URL = "http://localhost:19800/api/openapi.json"
DEFAULT_OUTPUT_DIR = Path("generated/api_client")
DEFAULT_LOCAL_SCHEMA_PATH = Path("generated/openapi-schema.json")
GENERATED_MARKER = ".generated"
GENERATOR_NAME = "python"

SCREAMING_CASE_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


class CodegenError(Exception):
    """A fatal step of client generation failed."""


def load_schema(source: str, *, timeout: float = 30) -> dict[str, Any]:
    """Load the OpenAPI schema from a URL or a local file.

    Raises:
        CodegenError: If the schema cannot be fetched, read or parsed.
    """
    logger.info(f"Fetching OpenAPI schema from: {source}")

    if source.startswith(("http://", "https://")):
        try:
            response = httpx.get(source, timeout=timeout)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise CodegenError(f"Failed to fetch schema from {source}: {e}") from e
        try:
            return response.json()
        except ValueError as e:
            raise CodegenError(f"Failed to parse JSON: {e}") from e

    try:
        with open(source, encoding="utf-8") as schema_file:
            return json.load(schema_file)
    except (OSError, ValueError) as e:
        raise CodegenError(f"Failed to read local schema from {source}: {e}") from e


def extract_enum_names(schema: dict[str, Any]) -> list[str]:
    """Return the sorted SCREAMING_CASE component schema names which are enums or string types."""
    schemas: dict[str, Any] = schema.get("components", {}).get("schemas", {})
    return sorted(
        name
        for name, definition in schemas.items()
        if SCREAMING_CASE_PATTERN.match(name)
        and isinstance(definition, dict)
        and (definition.get("enum") or definition.get("type") == "string")
    )


def generate_model_name_mappings(enum_names: Sequence[str]) -> str:
    """Map each name to itself, e.g. `A=A,B=B`."""
    return ",".join(f"{name}={name}" for name in enum_names)


def validate_output_directory(output_dir: Path, *, force: bool) -> None:
    """Check the output directory carries the `.generated` marker.

    Raises:
        CodegenError: If the marker is missing and `force` is not set.
    """
    marker_path = output_dir / GENERATED_MARKER
    if marker_path.exists():
        return

    if not force:
        logger.error(
            f"Safety check failed: the marker file '{marker_path}' was not found. "
            "This usually means the generator is being run in the wrong directory. "
            "Use --force to proceed anyway.",
        )
        raise CodegenError("Missing .generated marker file")

    logger.warning(f"{GENERATED_MARKER} marker file not found, but --force is set. Proceeding...")


def build_generator_command(schema_source: str, output_dir: Path, model_name_mappings: str) -> list[str]:
    command = [
        "openapi-generator-cli",
        "generate",
        "-i",
        schema_source,
        "-g",
        GENERATOR_NAME,
        "-o",
        str(output_dir),
    ]
    if model_name_mappings:
        command.extend(["--model-name-mappings", model_name_mappings])
    return command


def run_generator(schema_source: str, output_dir: Path, model_name_mappings: str) -> None:
    """Run openapi-generator-cli.

    Raises:
        CodegenError: If the generator is missing or fails.
    """
    mapping_count = len(model_name_mappings.split(",")) if model_name_mappings else 0
    logger.info(f"Running openapi-generator-cli (schema: {schema_source}, output: {output_dir})")
    logger.info(f"{mapping_count} enum name mappings")

    try:
        subprocess.run(build_generator_command(schema_source, output_dir, model_name_mappings), check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise CodegenError(f"Failed to generate API client: {e}") from e

    logger.success("API client generated successfully!")


def run_formatter(output_dir: Path) -> bool:
    """Format the generated code with ruff. Failures are logged and otherwise ignored."""
    logger.info("Running ruff format on generated files...")
    try:
        subprocess.run(["ruff", "format", str(output_dir)], check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning(f"ruff format failed (non-fatal): {e}")
        return False

    logger.success("Formatting complete!")
    return True


def save_schema_locally(schema: dict[str, Any], path: Path) -> None:
    """Save a fetched schema so later runs can use --local. Failures are logged and otherwise ignored."""
    logger.info(f"Saving schema to {path}...")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as schema_file:
            json.dump(schema, schema_file, indent=2)
    except OSError as e:
        logger.warning(f"Failed to save schema locally: {e}")
        return
    logger.success("Schema saved locally")


def generate_api_client(
    *,
    schema_source: str,
    output_dir: Path,
    local_schema_path: Path,
    force: bool = False,
) -> None:
    """Run every generation step.

    Raises:
        CodegenError: If a fatal step fails.
    """
    validate_output_directory(output_dir, force=force)

    schema = load_schema(schema_source)
    enum_names = extract_enum_names(schema)
    logger.info(f"Found {len(enum_names)} SCREAMING_CASE enums")
    for name in enum_names:
        logger.debug(f"  - {name}")

    run_generator(schema_source, output_dir, generate_model_name_mappings(enum_names))
    run_formatter(output_dir)

    if Path(schema_source) != local_schema_path:
        save_schema_locally(schema, local_schema_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="generate-api-client",
        description="Generate the Python API client from the model reference service's OpenAPI schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--url",
        type=str,
        default=DEFAULT_SCHEMA_URL,
        help=f"OpenAPI schema URL (default: {DEFAULT_SCHEMA_URL})",
    )
    source.add_argument(
        "--local",
        action="store_true",
        default=False,
        help="Use the locally saved schema file instead of fetching one",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=False,
        help=f"Bypass the safety check for the {GENERATED_MARKER} marker file",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help=f"Directory to generate the client into (default: {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "--schema-path",
        type=Path,
        default=DEFAULT_LOCAL_SCHEMA_PATH,
        help=f"Where the schema is saved and read by --local (default: {DEFAULT_LOCAL_SCHEMA_PATH})",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Generate the API client.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    args = build_parser().parse_args(argv)
    configure_logger("INFO")

    schema_source = str(args.schema_path) if args.local else args.url

    try:
        generate_api_client(
            schema_source=schema_source,
            output_dir=args.output_dir,
            local_schema_path=args.schema_path,
            force=args.force,
        )
    except CodegenError as e:
        logger.error(f"Generation failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
