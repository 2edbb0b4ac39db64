#!/usr/bin/env python
"""Ingest local files into the development database.

Reads each file given on the command line, stores it through the configured
storage backend, and indexes its chapters.

Constraints:
- Refuses to run in staging or prod (LECTERN_ENV check)
- Duplicate uploads are reported, not re-ingested
- Never runs automatically (manual invocation only)

Usage:
    cd python && python ../scripts/ingest_dev.py --owner dev-user book.epub notes.md
"""

import sys
from pathlib import Path


def main(argv: list[str]) -> int:
    from lectern.config import Environment, get_settings
    from lectern.db.engine import create_schema, get_engine
    from lectern.db.repository import SqlAlchemySourceRepository
    from lectern.db.session import get_session_factory, transaction
    from lectern.errors import DuplicateUploadError, LecternError
    from lectern.logging import configure_logging
    from lectern.services.ingest import ingest_upload
    from lectern.services.toc import build_chapter_tree
    from lectern.storage.client import get_storage_client

    # 1. Arguments
    owner_id = "dev-user"
    if len(argv) >= 2 and argv[0] == "--owner":
        owner_id, argv = argv[1], argv[2:]
    if not argv:
        print("Usage: ingest_dev.py [--owner OWNER_ID] FILE [FILE ...]")
        return 1

    # 2. Environment check (hard fail in staging/prod)
    settings = get_settings()
    if settings.lectern_env not in (Environment.LOCAL, Environment.TEST):
        print(f"ERROR: ingest_dev.py refuses to run in LECTERN_ENV={settings.lectern_env.value}")
        return 1

    configure_logging(json_format=settings.log_json, level=settings.log_level)
    create_schema(get_engine())
    storage = get_storage_client()

    # 3. Ingest, one transaction per file
    failures = 0
    for name in argv:
        path = Path(name)
        db = get_session_factory()()
        try:
            with transaction(db):
                result = ingest_upload(
                    SqlAlchemySourceRepository(db),
                    storage,
                    owner_id,
                    path.name,
                    path.read_bytes(),
                    settings=settings,
                )
        except DuplicateUploadError as exc:
            print(f"• Exists: {path.name} -> source {exc.existing.id}")
            continue
        except (LecternError, OSError) as exc:
            print(f"✗ Failed: {path.name}: {exc}")
            failures += 1
            continue
        finally:
            db.close()

        # 4. Report
        print(f"✓ Created: {result.source.title!r} -> source {result.source.id}")
        stack = [(0, node) for node in reversed(build_chapter_tree(result.chapters))]
        while stack:
            depth, node = stack.pop()
            print(f"    {'  ' * depth}{node.chapter.title}  [{node.chapter.href}]")
            stack.extend((depth + 1, child) for child in reversed(node.children))
        for warning in result.warnings:
            print(f"    warning: {warning}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
