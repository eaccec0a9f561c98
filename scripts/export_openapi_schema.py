#!/usr/bin/env python3
"""
Export the OpenAPI schema of the bot auth API without running the server.

Imports the FastAPI app and calls app.openapi(). Also fails if any component
schema exposes stored credential material (token_hash / token_lookup), which
must never leave the service.

Usage:
    python scripts/export_openapi_schema.py [--output openapi.json]
"""

import argparse
import json
import sys
from pathlib import Path

from loguru import logger

FORBIDDEN_SCHEMA_FIELDS = {"token_hash", "token_lookup"}


def find_credential_leaks(schema: dict) -> list[str]:
    """Return "<Schema>.<field>" for every component exposing credential material."""
    leaks = []
    for name, component in schema.get("components", {}).get("schemas", {}).items():
        for field in component.get("properties", {}):
            if field in FORBIDDEN_SCHEMA_FIELDS:
                leaks.append(f"{name}.{field}")
    return leaks


def export_openapi_schema(output_path: Path) -> None:
    """Export OpenAPI schema from the FastAPI app.

    Args:
        output_path: Path to output JSON file
    """
    try:
        # NOTE: importing the app configures logging and creates the DB engine
        logger.info("Importing FastAPI app...")
        from wrbt_api.main import app
    except ImportError as e:
        logger.error(f"Failed to import FastAPI app: {e}")
        logger.error("Install the project first: pip install -e .")
        sys.exit(1)

    schema = app.openapi()

    leaks = find_credential_leaks(schema)
    if leaks:
        logger.error(f"Credential fields exposed in response schemas: {', '.join(leaks)}")
        sys.exit(1)

    with open(output_path, "w") as f:
        json.dump(schema, f, indent=2)

    logger.success(f"OpenAPI schema exported to {output_path}")
    logger.info("-" * 60)
    logger.info(f"API title: {schema.get('info', {}).get('title', 'unknown')}")
    logger.info(f"API version: {schema.get('info', {}).get('version', 'unknown')}")
    for path, operations in sorted(schema.get("paths", {}).items()):
        logger.info(f"  {', '.join(m.upper() for m in operations):<12} {path}")
    logger.info(f"Schemas: {len(schema.get('components', {}).get('schemas', {}))}")
    logger.info("-" * 60)


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(__file__).parent.parent / "openapi.json",
        help="Output file (default: openapi.json in the repository root)",
    )
    args = parser.parse_args()

    logger.info("=" * 60)
    logger.info("WRBT OpenAPI Schema Exporter")
    logger.info("=" * 60)

    export_openapi_schema(args.output)


if __name__ == "__main__":
    main()
