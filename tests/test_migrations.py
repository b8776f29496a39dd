"""
Tests that the Alembic migrations build the same schema the models expect.
"""

from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from referral_tracker.core.database import Database
from referral_tracker.core.errors import ConflictError
from referral_tracker.crud.candidate import SQLAlchemyCandidateRepository
from referral_tracker.services.candidate_service import CandidateService

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def alembic_config(database_url: str) -> Config:
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", database_url)
    config.attributes["configure_logger"] = False
    return config


def test_upgrade_creates_tables(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"

    command.upgrade(alembic_config(url), "head")

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        assert {"users", "candidates"} <= set(inspector.get_table_names())
        unique_indexes = {
            index["name"] for index in inspector.get_indexes("candidates") if index["unique"]
        }
        assert "ix_candidates_email" in unique_indexes
    finally:
        engine.dispose()


def test_migrated_schema_enforces_unique_email(tmp_path, storage, monkeypatch):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    command.upgrade(alembic_config(url), "head")

    database = Database(url)
    db = database.session()
    try:
        service = CandidateService(SQLAlchemyCandidateRepository(db), storage)
        data = {"name": "Jane Doe", "email": "jane@example.com", "phone": "+1-555-0100", "job_title": "Engineer"}
        service.create(data)
        monkeypatch.setattr(service.repository, "get_by_email", lambda email: None)

        with pytest.raises(ConflictError):
            service.create(data)
    finally:
        db.close()
        database.shutdown()


def test_downgrade_removes_tables(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = alembic_config(url)
    command.upgrade(config, "head")

    command.downgrade(config, "base")

    engine = create_engine(url)
    try:
        assert "candidates" not in inspect(engine).get_table_names()
    finally:
        engine.dispose()
