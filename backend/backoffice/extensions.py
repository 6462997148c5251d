# Overview: Shared SQLAlchemy and Migrate instances plus session helpers.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def get_session(session=None):
    """Return the injected session, or the request-scoped Flask-SQLAlchemy session."""
    return session if session is not None else db.session


def enable_sqlite_savepoints(engine) -> None:
    """
    Let pysqlite honour SAVEPOINT inside the ORM transaction.

    The stdlib driver defers BEGIN until the first DML statement, so a
    savepoint opened before any write would otherwise start (and release
    would commit) its own transaction. Hand BEGIN to SQLAlchemy instead.
    """
    from sqlalchemy import event

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")
