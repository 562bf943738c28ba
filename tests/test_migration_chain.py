"""Sanity checks for Alembic migration ordering and coverage.

The migrations in ``qrhunt/migrations/versions`` must form a single linear
upgrade path, and the schema they build must contain every table the ORM
models declare.
"""

from __future__ import annotations

from pathlib import Path
import re

from sqlalchemy import inspect

from qrhunt.database import Base
import qrhunt.models  # noqa: F401


VERSIONS_DIR = Path(__file__).resolve().parents[1] / "qrhunt" / "migrations" / "versions"


def _parse_revisions() -> dict[str, str | None]:
    revision_pattern = re.compile(r"^revision:\s*.*?['\"]([^'\"]+)['\"]", re.MULTILINE)
    down_revision_pattern = re.compile(r"^down_revision:\s*.*?=\s*(.+)", re.MULTILINE)

    revisions: dict[str, str | None] = {}
    for path in VERSIONS_DIR.glob("*.py"):
        text = path.read_text()

        revision_match = revision_pattern.search(text)
        if not revision_match:
            raise AssertionError(f"Missing revision identifier in {path.name}")

        down_revision = None
        down_match = down_revision_pattern.search(text)
        if down_match:
            string_match = re.search(r"['\"]([^'\"]*)['\"]", down_match.group(1))
            if string_match and string_match.group(1):
                down_revision = string_match.group(1)

        revisions[revision_match.group(1)] = down_revision

    return revisions


def test_migrations_have_single_head() -> None:
    revisions = _parse_revisions()
    assert revisions, "No migrations found"

    referenced = {down for down in revisions.values() if down}

    missing = {ref for ref in referenced if ref not in revisions}
    assert not missing, f"Missing migration files referenced by down_revision: {missing}"

    heads = sorted(set(revisions) - referenced)
    assert len(heads) == 1, f"Multiple migration heads detected: {heads}"

    seen: set[str] = set()
    current: str | None = heads[0]
    while current and current not in seen:
        seen.add(current)
        current = revisions[current]

    unreachable = set(revisions) - seen
    assert not unreachable, (
        "Some migrations are unreachable from the head revision: "
        f"{sorted(unreachable)}"
    )


async def test_migrated_schema_covers_models(test_engine) -> None:
    async with test_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: set(inspect(sync_conn).get_table_names()))

    assert set(Base.metadata.tables) <= tables
