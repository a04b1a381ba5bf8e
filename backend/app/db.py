from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from app.config import database_url, is_sqlite


ENGINE = create_engine(database_url(), pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(bind=ENGINE, class_=Session, expire_on_commit=False, autoflush=False, autocommit=False)


if is_sqlite():

    @event.listens_for(ENGINE, "connect")
    def _sqlite_enable_foreign_keys(dbapi_conn, _record) -> None:
        # SQLite ships with FK enforcement off per connection.
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


@contextmanager
def session_scope():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """
    Create missing tables directly from the models.

    Used for local sqlite runs and tests; managed databases go through Alembic.
    """
    from app.models import Base

    Base.metadata.create_all(ENGINE)
