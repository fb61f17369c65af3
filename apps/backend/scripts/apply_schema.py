#!/usr/bin/env python3
"""
Apply the extraction pipeline schema (infra/schema.sql) to PostgreSQL.
Idempotent - safe to run multiple times.
"""
import os
import sys
import argparse
from pathlib import Path
from urllib.parse import urlparse, unquote

import psycopg2

PIPELINE_TABLES = (
    'scraping_attempts',
    'scraped_job_listing_data',
    'scraping_events',
    'html_scraping_logs',
)


def get_table_summary(cursor) -> dict:
    """Row counts of the tables in the public schema."""
    cursor.execute("""
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = 'public'
        ORDER BY table_name
    """)
    tables = [row[0] for row in cursor.fetchall()]

    summary = {}
    for table in tables:
        cursor.execute(f"SELECT COUNT(*) FROM {table}")
        summary[table] = cursor.fetchone()[0]
    return summary


def connection_params(database_url: str) -> dict:
    parsed = urlparse(database_url.replace('[', '').replace(']', ''))
    params = {
        "host": parsed.hostname,
        "port": parsed.port or 5432,
        "database": parsed.path.lstrip('/') or 'postgres',
        "user": parsed.username or 'postgres',
    }
    if parsed.password:
        params["password"] = unquote(parsed.password)
    return params


def main():
    parser = argparse.ArgumentParser(
        description="Apply the extraction pipeline schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python apply_schema.py                      # Uses DATABASE_URL
  python apply_schema.py --schema other.sql   # Apply a different file
        """
    )
    project_root = Path(__file__).resolve().parent.parent.parent.parent
    parser.add_argument(
        "--schema",
        default=str(project_root / "infra" / "schema.sql"),
        help="Path to the schema SQL file",
    )
    args = parser.parse_args()

    database_url = os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL")
    if not database_url:
        print("Error: DATABASE_URL environment variable is not set")
        sys.exit(1)

    schema_file = Path(args.schema)
    if not schema_file.exists():
        print(f"Error: Schema file not found: {schema_file}")
        sys.exit(1)

    params = connection_params(database_url)
    print(f"Connecting to: {params['host']}:{params['port']}")
    try:
        conn = psycopg2.connect(**params, connect_timeout=10)
    except psycopg2.Error as e:
        print(f"✗ Connection failed: {e}")
        sys.exit(1)

    try:
        cursor = conn.cursor()
        initial_tables = get_table_summary(cursor)

        print(f"Applying schema ({schema_file.name})...")
        cursor.execute(schema_file.read_text())
        conn.commit()

        final_tables = get_table_summary(cursor)
        new_tables = set(final_tables) - set(initial_tables)
        if new_tables:
            print(f"✓ Created {len(new_tables)} new table(s): {', '.join(sorted(new_tables))}")
        else:
            print("✓ All tables already exist (idempotent)")

        print("\nPipeline tables:")
        print("-" * 60)
        for table in PIPELINE_TABLES:
            count = final_tables.get(table)
            status = f"{count} row(s)" if count is not None else "missing"
            print(f"  {table:30} {status}")
    except psycopg2.Error as e:
        conn.rollback()
        print(f"✗ Schema failed: {e}")
        sys.exit(1)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
