#!/usr/bin/env python3
"""Seed the questionnaire definitions from ``definitions/*.yaml`` into PostgreSQL.

Every definition is validated by the loader before anything is written.
Definitions that already exist in the database are skipped, so the script
can be re-run after adding a new YAML file.  New definitions are stored as
drafts unless ``--publish`` is given.

Usage::

    # Apply migrations first
    alembic upgrade head

    # Store new definitions as drafts
    uv run python scripts/seed_definitions.py

    # Store and publish them (archives the previous onboarding)
    uv run python scripts/seed_definitions.py --publish

    # Seed from another directory
    uv run python scripts/seed_definitions.py --dir ./my-definitions --publish
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.table import Table

from caregiver_db.engine import dispose_engine, session_scope
from caregiver_questionnaire.definitions import DefinitionCatalog, DefinitionLoader
from caregiver_questionnaire.errors import NotFoundError, QuestionnaireError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

async def seed(loader: DefinitionLoader, *, publish: bool) -> list[tuple[str, str]]:
    """Write the loaded definitions; return ``(id, outcome)`` pairs."""
    catalog = DefinitionCatalog()
    outcomes: list[tuple[str, str]] = []

    async with session_scope() as db:
        for questionnaire_id, definition in loader.definitions.items():
            try:
                await catalog.get_definition(db, questionnaire_id)
            except NotFoundError:
                pass
            else:
                outcomes.append((questionnaire_id, "skipped (exists)"))
                continue

            await catalog.create(db, definition)
            if publish:
                archived = await catalog.publish(db, questionnaire_id)
                outcome = "published"
                if archived:
                    outcome += f" (archived {', '.join(archived)})"
            else:
                outcome = "draft"
            outcomes.append((questionnaire_id, outcome))
    return outcomes


# ---------------------------------------------------------------------------
# CLI + async main
# ---------------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Seed questionnaire definitions into the database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dir",
        default=None,
        help="Definitions directory (default: definitions/ at repo root)",
    )
    parser.add_argument(
        "--publish",
        action="store_true",
        help="Publish each newly created definition",
    )
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    console = Console()
    logging.basicConfig(level=logging.WARNING)

    loader = DefinitionLoader(args.dir)
    try:
        loader.load()
    except (FileNotFoundError, ValueError, QuestionnaireError) as exc:
        console.print(f"[red]Cannot load definitions:[/] {exc}")
        sys.exit(1)

    try:
        outcomes = await seed(loader, publish=args.publish)
    except QuestionnaireError as exc:
        console.print(f"[red]Seeding failed, nothing was committed:[/] {exc}")
        sys.exit(1)
    finally:
        await dispose_engine()

    table = Table(title="Seeded definitions")
    table.add_column("Questionnaire")
    table.add_column("Outcome")
    for questionnaire_id, outcome in outcomes:
        table.add_row(questionnaire_id, outcome)
    console.print(table)


if __name__ == "__main__":
    asyncio.run(main())
