import os
import tempfile

# Keep the default data directory out of the working tree
os.environ.setdefault("BANK_DATA_DIR", tempfile.mkdtemp(prefix="studybank-test-"))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studybank.database import init_db


def _memory_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)()


@pytest.fixture
def db():
    engine, session = _memory_session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def other_db():
    """A second, independent bank."""
    engine, session = _memory_session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()
