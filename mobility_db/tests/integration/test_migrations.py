"""Integration tests for applying the research-schema migrations.

This module tests:
1. Upgrading an empty database to head creates every table and column
2. Fresh databases end up with identical layouts
3. Column additions are idempotent
. Offline (--sql) mode renders the DDL without a database
"""

from __future__ import annotations

import importlib.util
from datetime import datetime
from io import StringIO
from types import SimpleNamespace

import pytest
import sqlalchemy as sa
from alembic import command
from sqlalchemy.exc import IntegrityError

from mobility_db.core.database import create_sync_engine
from mobility_db.core.runner import MIGRATIONS_PATH, MigrationRunner
from mobility_db.migrations import helpers
from mobility_db.migrations.helpers import get_column_names, safe_column_add

pytestmark = [pytest.mark.integration]

RESEARCH_TABLES = {
    "hntb_trip",
    "hntb_event",
    "hntb_tow_and_go",
    "hntb_target_participant",
    "hntb_school_zone",
}


def _load_revision(filename: str):
    path = MIGRATIONS_PATH / "versions" / filename
    spec = importlib.util.spec_from_file_location(f"revision_{path.stem}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _layout(engine: sa.Engine) -> dict[str, list[tuple[str, str, bool]]]:
    inspector = sa.inspect(engine)
    return {
        table: [
            (col["name"], str(col["type"]), col["nullable"])
            for col in inspector.get_columns(table)
        ]
        for table in sorted(inspector.get_table_names())
    }


class TestUpgradeToHead:
    def test_creates_all_tables(self, runner, engine):
        assert runner.upgrade() == "0005"
        tables = set(sa.inspect(engine).get_table_names())
        assert RESEARCH_TABLES <= tables
        assert "alembic_version" in tables

    def test_tow_and_go_layout(self, migrated_engine):
        with migrated_engine.connect() as conn:
            columns = get_column_names(conn, "hntb_tow_and_go")
        assert columns == [
            "tow_and_go_id",
            "user_id",
            "status",
            "event_lat",
            "event_lng",
            "request_time",
            "response_time",
            "created_at",
            "updated_at",
            "event_county",
        ]

    def test_unique_indexes_on_ids(self, migrated_engine):
        inspector = sa.inspect(migrated_engine)
        expected = {
            "hntb_tow_and_go": ("hntb_tow_and_go_tow_and_go_id_unique", ["tow_and_go_id"]),
            "hntb_target_participant": (
                "hntb_target_participant_target_participant_id_unique",
                ["target_participant_id"],
            ),
            "hntb_school_zone": ("hntb_school_zone_action_id_unique", ["action_id"]),
        }
        for table, (name, columns) in expected.items():
            indexes = {idx["name"]: idx for idx in inspector.get_indexes(table)}
            assert indexes[name]["unique"]
            assert indexes[name]["column_names"] == columns
            assert inspector.get_pk_constraint(table)["constrained_columns"] == columns

    @pytest.mark.parametrize(
        ("table", "column"),
        [
            ("hntb_trip", "origin_county"),
            ("hntb_event", "event_county"),
            ("hntb_tow_and_go", "event_county"),
            ("hntb_school_zone", "event_county"),
        ],
    )
    def test_county_columns_nullable(self, migrated_engine, table, column):
        columns = {c["name"]: c for c in sa.inspect(migrated_engine).get_columns(table)}
        assert columns[column]["nullable"] is True
        assert columns[column]["type"].length == 64

    def test_models_match_migrated_tables(self, migrated_engine):
        from mobility_db.models import Base

        inspector = sa.inspect(migrated_engine)
        for table in Base.metadata.sorted_tables:
            migrated = {col["name"] for col in inspector.get_columns(table.name)}
            assert migrated == set(table.columns.keys()), table.name

    def test_fresh_databases_have_identical_layouts(self, tmp_path, migrated_engine):
        other_url = f"sqlite:///{tmp_path / 'second.db'}"
        MigrationRunner(other_url).upgrade()
        other = create_sync_engine(other_url)
        try:
            assert _layout(other) == _layout(migrated_engine)
        finally:
            other.dispose()


class TestCountyIdempotency:
    """Column additions leave exactly one county column."""

    def test_upgrade_tolerates_preexisting_column(self, runner, engine):
        runner.upgrade("0004")
        with engine.begin() as conn:
            safe_column_add(conn, "hntb_tow_and_go", "event_county", sa.String(64))

        assert runner.upgrade() == "0005"
        with engine.connect() as conn:
            assert get_column_names(conn, "hntb_tow_and_go").count("event_county") == 1
            assert get_column_names(conn, "hntb_trip").count("origin_county") == 1

    def test_applying_county_revision_twice(self, runner, engine, monkeypatch):
        runner.upgrade("0004")
        revision = _load_revision("0005_add_county_columns.py")

        with engine.begin() as conn:
            monkeypatch.setattr(helpers, "op", SimpleNamespace(get_bind=lambda: conn))
            revision.upgrade()
            revision.upgrade()

        with engine.connect() as conn:
            for table, column, _ in revision.COUNTY_COLUMNS:
                assert get_column_names(conn, table).count(column) == 1

    def test_existing_rows_untouched(self, runner, engine):
        runner.upgrade("0004")
        with engine.begin() as conn:
            conn.execute(
                sa.text(
                    "INSERT INTO hntb_trip (trip_id, user_id, origin_lat, origin_lng, start_time) "
                    "VALUES ('T1', 'u1', 30.27, -97.74, '2026-09-14 07:30:00')"
                )
            )

        runner.upgrade()
        with engine.connect() as conn:
            row = conn.execute(
                sa.text("SELECT trip_id, origin_lat, origin_county FROM hntb_trip")
            ).one()
        assert row == ("T1", 30.27, None)


class TestConstraints:
    """NOT NULL and primary-key constraints declared by the migrations."""

    @pytest.fixture
    def tables(self, migrated_engine):
        metadata = sa.MetaData()
        metadata.reflect(migrated_engine, only=sorted(RESEARCH_TABLES))
        return metadata.tables

    def _tow_and_go_row(self, **overrides):
        row = {
            "tow_and_go_id": 5,
            "user_id": "user-1",
            "status": 1,
            "event_lat": 30.27,
            "event_lng": -97.74,
            "request_time": datetime(2026, 9, 14, 7, 30),
        }
        row.update(overrides)
        return row

    def test_tow_and_go_requires_event_lat(self, migrated_engine, tables):
        row = self._tow_and_go_row()
        del row["event_lat"]
        with pytest.raises(IntegrityError), migrated_engine.begin() as conn:
            conn.execute(tables["hntb_tow_and_go"].insert(), row)

    @pytest.mark.parametrize("column", ["user_id", "status", "event_lng", "request_time"])
    def test_tow_and_go_rejects_null(self, migrated_engine, tables, column):
        with pytest.raises(IntegrityError), migrated_engine.begin() as conn:
            conn.execute(tables["hntb_tow_and_go"].insert(), self._tow_and_go_row(**{column: None}))

    def test_tow_and_go_duplicate_id_rejected(self, migrated_engine, tables):
        with migrated_engine.begin() as conn:
            conn.execute(tables["hntb_tow_and_go"].insert(), self._tow_and_go_row())

        with pytest.raises(IntegrityError), migrated_engine.begin() as conn:
            conn.execute(tables["hntb_tow_and_go"].insert(), self._tow_and_go_row(user_id="u2"))

    def test_tow_and_go_audit_defaults(self, migrated_engine, tables):
        with migrated_engine.begin() as conn:
            conn.execute(tables["hntb_tow_and_go"].insert(), self._tow_and_go_row())
            row = conn.execute(sa.select(tables["hntb_tow_and_go"])).mappings().one()
        assert row["created_at"] is not None
        assert row["updated_at"] is not None
        assert row["response_time"] is None
        assert row["event_county"] is None

    def test_target_participant_requires_hash_id(self, migrated_engine, tables):
        with pytest.raises(IntegrityError), migrated_engine.begin() as conn:
            conn.execute(tables["hntb_target_participant"].insert(), {"target_participant_id": 1})

    def test_target_participant_id_assigned(self, migrated_engine, tables):
        with migrated_engine.begin() as conn:
            result = conn.execute(tables["hntb_target_participant"].insert(), {"hash_id": "ab" * 32})
        assert result.inserted_primary_key[0] == 1

    def test_school_zone_duplicate_action_rejected(self, migrated_engine, tables):
        row = {
            "action_id": "SZ_001",
            "user_id": "user-1",
            "event_name": "crosswalk_use",
            "event_lat": 30.0,
            "event_lng": -97.0,
            "logged_time": datetime(2026, 9, 14, 7, 45),
        }
        with migrated_engine.begin() as conn:
            conn.execute(tables["hntb_school_zone"].insert(), row)
        with pytest.raises(IntegrityError), migrated_engine.begin() as conn:
            conn.execute(tables["hntb_school_zone"].insert(), row)


class TestOfflineSql:
    """SQL generation without a database connection (``alembic upgrade --sql``)."""

    @staticmethod
    def _render(url: str, action, revision: str) -> str:
        config = MigrationRunner(url).config
        output = StringIO()
        config.output_buffer = output
        action(config, revision, sql=True)
        return output.getvalue()

    def test_offline_upgrade_generates_sql(self, tmp_path):
        db_path = tmp_path / "offline.db"
        sql = self._render(f"sqlite:///{db_path}", command.upgrade, "head")

        for table in RESEARCH_TABLES:
            assert f"CREATE TABLE {table}" in sql
        assert (
            "CREATE UNIQUE INDEX hntb_school_zone_action_id_unique "
            "ON hntb_school_zone (action_id)"
        ) in sql
        assert "ALTER TABLE hntb_trip ADD COLUMN origin_county VARCHAR(64)" in sql
        assert "ALTER TABLE hntb_school_zone ADD COLUMN event_county VARCHAR(64)" in sql
        assert "AFTER" not in sql
        assert "UPDATE alembic_version SET version_num='0005'" in sql
        assert not db_path.exists()

    def test_offline_downgrade_generates_sql(self, tmp_path):
        sql = self._render(f"sqlite:///{tmp_path / 'offline.db'}", command.downgrade, "0005:base")

        assert "ALTER TABLE hntb_event DROP COLUMN event_county" in sql
        for table in RESEARCH_TABLES:
            assert f"DROP TABLE {table}" in sql
        assert sql.index("DROP COLUMN event_county") < sql.index("DROP TABLE hntb_school_zone")

    def test_offline_mysql_places_county_after_longitude(self):
        sql = self._render("mysql://analyst@localhost/mobility", command.upgrade, "head")

        assert "TINYINT" in sql
        assert (
            "ALTER TABLE hntb_tow_and_go ADD COLUMN event_county VARCHAR(64) AFTER event_lng"
        ) in sql
        assert "ALTER TABLE hntb_trip ADD COLUMN origin_county VARCHAR(64) AFTER origin_lng" in sql
