# carryon/services/__init__.py
from contextlib import contextmanager


@contextmanager
def atomic(session):
    """Commit everything done inside the block as one unit, or nothing at all."""
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
