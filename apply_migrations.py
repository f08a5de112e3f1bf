#!/usr/bin/env python3
"""
Display the Supabase migrations for the prospect CRM schema.
"""

from pathlib import Path


def main():
    """Display migrations."""
    migrations_dir = Path(__file__).parent / "supabase" / "migrations"
    migrations = sorted(migrations_dir.glob("*.sql"))

    print("=== Database Migrations for the Backlink Engine ===\n")
    for migration_file in migrations:
        print(f"  ✓ {migration_file.name}")

    print("\n" + "=" * 70)
    print("\nApply them in order, either:\n")
    print("  1. Supabase Dashboard -> SQL Editor -> paste each file -> Run")
    print("  2. psql postgresql://[CONNECTION_STRING] < supabase/migrations/<file>.sql\n")

    for migration_file in migrations:
        print(f"\n{'=' * 70}")
        print(f"File: {migration_file.name}")
        print(f"{'=' * 70}\n")
        print(migration_file.read_text())


if __name__ == "__main__":
    main()
