from typing import Any, Generator, Type

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, close_all_sessions, declarative_base, sessionmaker


@pytest.fixture()
def sa_base() -> Any:
    return declarative_base()


@pytest.fixture()
def session(sa_base: Any, sa_repo: Type, engine: Engine) -> Generator[Session, None, None]:
    # sa_repo defines the models, tables can be created only afterwards
    sa_base.metadata.drop_all(engine)
    sa_base.metadata.create_all(engine)
    session_factory = sessionmaker(engine)
    yield session_factory()
    close_all_sessions()
    sa_base.metadata.drop_all(engine)
