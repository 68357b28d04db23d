from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from shopcore.core.config import DATABASE_URL, SQL_ECHO

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=SQL_ECHO, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Database dependency for FastAPI"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class QueryCounter:
    """Statements executed on an engine while a count_queries block is open"""

    def __init__(self):
        self.statements = []

    @property
    def count(self) -> int:
        return len(self.statements)


@contextmanager
def count_queries(bind):
    """Count SQL statements sent through ``bind`` (an Engine or Connection)"""
    counter = QueryCounter()

    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        counter.statements.append(statement)

    event.listen(bind, "before_cursor_execute", _before_cursor_execute)
    try:
        yield counter
    finally:
        event.remove(bind, "before_cursor_execute", _before_cursor_execute)
