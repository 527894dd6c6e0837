from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from config import get_settings
from database import Base
import models  # noqa: F401

ROOT = Path(__file__).resolve().parents[1]


def test_migrations_create_every_model_table(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    monkeypatch.setattr(get_settings(), "database_url", url)
    config = Config()
    config.set_main_option("script_location", str(ROOT / "alembic"))

    command.upgrade(config, "head")

    tables = set(inspect(create_engine(url)).get_table_names())
    assert tables - {"alembic_version"} == set(Base.metadata.tables)

    command.downgrade(config, "202601100900")
    tables = set(inspect(create_engine(url)).get_table_names())
    assert "savings_goals" not in tables
    assert "debts" not in tables
    assert "operations" in tables
