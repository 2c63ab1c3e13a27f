"""
Migration script for the gallery directory pipeline (v1).

Creates missing pipeline tables, then upgrades a legacy
external_gallery_directory table in place:
- match_key, source_count, quality_score
- enrichment columns: instagram, founded_year, space_size
- crawl back-off columns: last_crawled_at, crawl_fail_count, crawl_last_error, crawl_last_error_at
- country/city and quality indexes

match_key stays nullable and non-unique.

Run with:
    python -m migrations.migrate_gallery_directory_v1
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine, inspect, text

from gallery_pipeline.config import get_settings
from gallery_pipeline.models.base import ensure_schema

settings = get_settings()

DIRECTORY_COLUMNS = (
    ("match_key", "match_key VARCHAR(1000)"),
    ("source_count", "source_count INTEGER NOT NULL DEFAULT 1"),
    ("quality_score", "quality_score INTEGER NOT NULL DEFAULT 0"),
    ("instagram", "instagram VARCHAR(300)"),
    ("founded_year", "founded_year INTEGER"),
    ("space_size", "space_size VARCHAR(80)"),
    ("last_crawled_at", "last_crawled_at TIMESTAMP"),
    ("crawl_fail_count", "crawl_fail_count INTEGER NOT NULL DEFAULT 0"),
    ("crawl_last_error", "crawl_last_error VARCHAR(300)"),
    ("crawl_last_error_at", "crawl_last_error_at TIMESTAMP"),
)

DIRECTORY_INDEXES = (
    "CREATE INDEX IF NOT EXISTS ix_external_gallery_directory_country_city "
    "ON external_gallery_directory (country, city)",
    "CREATE INDEX IF NOT EXISTS ix_external_gallery_directory_quality "
    "ON external_gallery_directory (quality_score, updated_at)",
    "CREATE INDEX IF NOT EXISTS ix_external_gallery_directory_match_key "
    "ON external_gallery_directory (match_key)",
)


def _add_column_if_missing(conn, table_name: str, column_sql: str, column_name: str) -> None:
    cols = {c["name"] for c in inspect(conn).get_columns(table_name)}
    if column_name in cols:
        print(f"Column already exists: {table_name}.{column_name}")
        return
    print(f"Adding column: {table_name}.{column_name}")
    conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_sql}"))


def migrate_gallery_directory_v1():
    engine = create_engine(settings.database_url_sync, echo=settings.debug)
    with engine.begin() as conn:
        ensure_schema(conn)

        for column_name, column_sql in DIRECTORY_COLUMNS:
            _add_column_if_missing(conn, "external_gallery_directory", column_sql, column_name)

        for statement in DIRECTORY_INDEXES:
            conn.execute(text(statement))

        # A unique match_key index from older deployments blocks upserts keyed on gallery_id.
        conn.execute(text("DROP INDEX IF EXISTS external_gallery_directory_match_key_key"))

        # source_count follows the comma-joined portal list written by the sync job.
        conn.execute(
            text(
                """
                UPDATE external_gallery_directory
                SET source_count = CASE
                    WHEN source_portal IS NULL OR source_portal = '' THEN 0
                    ELSE LENGTH(source_portal) - LENGTH(REPLACE(source_portal, ',', '')) + 1
                END
                WHERE source_count IS NULL OR source_count = 1
                """
            )
        )


if __name__ == "__main__":
    print("Starting gallery directory migration (v1)...")
    migrate_gallery_directory_v1()
    print("Migration complete")
