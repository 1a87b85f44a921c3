import logging

from sqlalchemy import text

from app.db.session import create_db_engine


def test_sqlite_engine_enforces_foreign_keys(caplog):
    with caplog.at_level(logging.INFO, logger="portal.db"):
        engine = create_db_engine("sqlite://")
    assert "foreign keys enforced (in_memory=True)" in caplog.text
    with engine.connect() as connection:
        assert connection.execute(text("PRAGMA foreign_keys")).scalar() == 1
    engine.dispose()
