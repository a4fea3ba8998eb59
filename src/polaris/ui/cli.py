from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from polaris.app import ingest_file, merge_entities, mint_canonical_entity, resolve_identifier
from polaris.config import configure_logging
from polaris.domain.errors import PolarisError
from polaris.domain.model import EntityType, IngestStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Operate the Polaris entity registry")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest anchored events from a file")
    ingest.add_argument(
        "file",
        type=Path,
        help="JSON array or JSON-lines file of anchored events",
    )

    mint = subparsers.add_parser("mint", help="Mint a canonical entity")
    mint.add_argument(
        "entity_type",
        choices=[entity_type.value for entity_type in EntityType],
        help="Entity type to mint",
    )
    mint.add_argument("--id", dest="canonical_id", help="Explicit canonical id to use")
    mint.add_argument("--created-by", default="system", help="Author recorded on the entity")

    merge = subparsers.add_parser("merge", help="Merge duplicate entities into a survivor")
    merge.add_argument("survivor", help="Canonical id of the surviving entity")
    merge.add_argument("absorbed", nargs="+", help="Ids of the entities to absorb")
    merge.add_argument("--submitter", default="system", help="Who requested the merge")
    merge.add_argument("--evidence", default="", help="Free-text justification")

    resolve = subparsers.add_parser("resolve", help="Resolve any identifier to its canonical id")
    resolve.add_argument("identifier", help="Canonical, provisional or external id")

    return parser.parse_args(list(argv))


def _run(parsed_args: argparse.Namespace) -> int:
    if parsed_args.command == "ingest":
        results = ingest_file(parsed_args.file)
        failed = 0
        for result in results:
            log.info(json.dumps(result.as_dict(), sort_keys=True))
            if result.status is IngestStatus.FAILED:
                failed += 1
        return 1 if failed else 0
    if parsed_args.command == "mint":
        outcome = mint_canonical_entity(
            parsed_args.entity_type,
            canonical_id=parsed_args.canonical_id,
            created_by=parsed_args.created_by,
        )
        log.info("%s %s", "Minted" if outcome.created else "Exists", outcome.entity_id)
        return 0
    if parsed_args.command == "merge":
        result = merge_entities(
            parsed_args.survivor,
            parsed_args.absorbed,
            submitter=parsed_args.submitter,
            evidence=parsed_args.evidence,
        )
        log.info(json.dumps(result.as_dict(), sort_keys=True))
        return 0
    if parsed_args.command == "resolve":
        log.info("%s -> %s", parsed_args.identifier, resolve_identifier(parsed_args.identifier))
        return 0
    raise ValueError(f"Unsupported command: {parsed_args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else None)

    try:
        exit_code = _run(parsed_args)
    except PolarisError as exc:
        log.error("%s: %s", exc.kind, exc.message)  # noqa: TRY400
        sys.exit(1)
    except (OSError, ValueError):
        log.exception("Invalid input")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
