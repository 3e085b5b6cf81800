"""CLI entry point for querying a catalog through the metadata collection.

Usage:
    python -m catalog_bridge --config connector.yaml types
    python -m catalog_bridge --config connector.yaml get-entity 1-2-3
    python -m catalog_bridge --config connector.yaml find Asset --property name=.*cust.*
    python -m catalog_bridge --config connector.yaml search GlossaryTerm customer
    python -m catalog_bridge --config connector.yaml relationships 1-2-3

Results are printed to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from catalog_bridge.lib.collection import MetadataCollection
from catalog_bridge.lib.config_loader import ConfigError, build_metadata_collection, load_connector_config
from catalog_bridge.lib.errors import BridgeError
from catalog_bridge.lib.logging import setup_logging
from catalog_bridge.lib.types import InstanceProperties, MatchCriteria, PrimitiveValue

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _dump(result: Any) -> str:
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        result = dataclasses.asdict(result)
    elif isinstance(result, list):
        result = [dataclasses.asdict(item) if dataclasses.is_dataclass(item) else item for item in result]
    return json.dumps(result, indent=2, default=_json_default)


def _type_guid(collection: MetadataCollection, user: str, type_name: Optional[str]) -> Optional[str]:
    if not type_name or type_name == "-":
        return None
    return collection.get_type_def_by_name(user, type_name).guid


def _parse_properties(pairs: List[str]) -> InstanceProperties:
    properties: InstanceProperties = {}
    for pair in pairs:
        name, sep, regex = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"--property expects NAME=REGEX, got '{pair}'")
        properties[name] = PrimitiveValue(regex)
    return properties


def run_command(collection: MetadataCollection, args: argparse.Namespace) -> Any:
    """Dispatch one CLI command and return its result."""
    user = args.user
    if args.command == "types":
        gallery = collection.get_all_types(user)
        return [
            {"name": t.name, "category": t.category.value, "guid": t.guid, "superType": t.super_type}
            for t in gallery.type_defs
        ]
    if args.command == "get-entity":
        return collection.get_entity_detail(user, args.guid)
    if args.command == "find":
        return collection.find_entities_by_property(
            user,
            _type_guid(collection, user, args.type_name),
            _parse_properties(args.property or []),
            MatchCriteria(args.match),
            page_size=args.page_size,
        )
    if args.command == "search":
        return collection.find_entities_by_property_value(
            user,
            _type_guid(collection, user, args.type_name),
            args.text,
            page_size=args.page_size,
        )
    if args.command == "relationships":
        return collection.get_relationships_for_entity(user, args.guid, page_size=args.page_size)
    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-bridge",
        description="Query a catalog through the generic metadata collection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List implemented types
    catalog-bridge --config connector.yaml types

    # Data files whose name contains "cust"
    catalog-bridge --config connector.yaml find Asset --property name=.*cust.*

    # Glossary terms mentioning "customer" anywhere
    catalog-bridge --config connector.yaml search GlossaryTerm customer
        """,
    )
    parser.add_argument("--config", "-c", required=True, help="Connector configuration YAML")
    parser.add_argument("--env-file", help="Load environment variables from this .env file")
    parser.add_argument("--user", default="catalog-bridge", help="User id sent with every request")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-log",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    parser.add_argument("--log-file", help="Write logs to a file in addition to console")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("types", help="List implemented type definitions")

    get_entity = commands.add_parser("get-entity", help="Fetch one entity")
    get_entity.add_argument("guid")

    find = commands.add_parser("find", help="Find entities by property values")
    find.add_argument("type_name", help="Entity type name, or - for all types")
    find.add_argument("--property", "-p", action="append", metavar="NAME=REGEX")
    find.add_argument("--match", choices=[m.value for m in MatchCriteria], default="all")
    find.add_argument("--page-size", type=int, default=100)

    search = commands.add_parser("search", help="Free-text search across string properties")
    search.add_argument("type_name", help="Entity type name, or - for all types")
    search.add_argument("text", help="Literal text or literal regular expression")
    search.add_argument("--page-size", type=int, default=100)

    relationships = commands.add_parser("relationships", help="List relationships of an entity")
    relationships.add_argument("guid")
    relationships.add_argument("--page-size", type=int, default=0)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, json_format=args.json_log, log_file=args.log_file)

    try:
        config = load_connector_config(args.config, env_file=args.env_file)
        collection = build_metadata_collection(config)
        result = run_command(collection, args)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except BridgeError as exc:
        logger.debug("Request failed", extra={"error": exc.to_dict()})
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print(_dump(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
