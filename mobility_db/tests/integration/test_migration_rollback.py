"""Migration rollback verification tests.

Each revert must leave the schema in its pre-migration state: the table
absent for table-creation revisions, the column absent for the county
revision. Failures during a revert propagate to the caller.
"""

from __future__ import annotations

import logging

import pytest
import sqlalchemy as sa

from mobility_db.migrations.helpers import PreflightCheckError, get_column_names

pytestmark = [pytest.mark.integration, pytest.mark.timeout(90)]


def _tables(engine: sa.Engine) -> set[str]:
    return set(sa.inspect(engine).get_table_names()) - {"alembic_version"}


class TestSingleStepRollback:
    def test_county_rollback_removes_columns(self, runner, migrated_engine):
        with migrated_engine.connect() as conn:
            assert "event_county" in get_column_names(conn, "hntb_school_zone")

        assert runner.downgrade() == "0004"

        with migrated_engine.connect() as conn:
            assert "origin_county" not in get_column_names(conn, "hntb_trip")
            for table in ("hntb_event", "hntb_tow_and_go", "hntb_school_zone"):
                assert "event_county" not in get_column_names(conn, table)

    @pytest.mark.parametrize(
        ("target", "remaining"),
        [
            ("0003", {"hntb_trip", "hntb_event", "hntb_tow_and_go", "hntb_target_participant"}),
            ("0002", {"hntb_trip", "hntb_event", "hntb_tow_and_go"}),
            ("0001", {"hntb_trip", "hntb_event"}),
        ],
    )
    def test_table_rollback_drops_table(self, runner, engine, target, remaining):
        runner.upgrade("0004")

        assert runner.downgrade(target) == target

        assert _tables(engine) == remaining

    def test_downgrade_to_base_removes_everything(self, runner, migrated_engine):
        assert runner.downgrade("base") is None
        assert _tables(migrated_engine) == set()


class TestRoundTrip:
    def test_upgrade_after_downgrade_restores_layout(self, runner, migrated_engine):
        inspector = sa.inspect(migrated_engine)
        layout = {t: [c["name"] for c in inspector.get_columns(t)] for t in _tables(migrated_engine)}

        runner.downgrade("base")
        runner.upgrade()

        inspector = sa.inspect(migrated_engine)
        assert {
            t: [c["name"] for c in inspector.get_columns(t)] for t in _tables(migrated_engine)
        } == layout

    def test_county_rollback_with_data_keeps_rows(self, runner, migrated_engine):
        with migrated_engine.begin() as conn:
            conn.execute(
                sa.text(
                    "INSERT INTO hntb_school_zone "
                    "(action_id, user_id, event_name, event_lat, event_lng, event_county, "
                    "logged_time) VALUES ('SZ_001', 'u1', 'crosswalk_use', 30.0, -97.0, "
                    "'Travis', '2026-09-14 07:45:00')"
                )
            )

        runner.downgrade("0004")

        with migrated_engine.connect() as conn:
            rows = conn.execute(sa.text("SELECT action_id, event_name FROM hntb_school_zone"))
            assert rows.all() == [("SZ_001", "crosswalk_use")]


class TestRollbackFailures:
    def test_revert_failure_propagates_and_logs(self, runner, migrated_engine, caplog):
        """A table referenced by another table's foreign key cannot be reverted."""
        with migrated_engine.begin() as conn:
            conn.execute(
                sa.text(
                    "CREATE TABLE hntb_school_zone_review ("
                    "review_id INTEGER PRIMARY KEY, "
                    "action_id VARCHAR(32) REFERENCES hntb_school_zone (action_id))"
                )
            )
        caplog.set_level(logging.ERROR, logger="alembic.helpers")

        runner.downgrade("0004")
        with pytest.raises(PreflightCheckError, match="referenced by foreign keys"):
            runner.downgrade("0003")

        assert "Migration 'drop_hntb_school_zone' failed" in caplog.text
        assert runner.current() == "0004"
        assert "hntb_school_zone" in _tables(migrated_engine)
