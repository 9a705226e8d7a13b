from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from decision_graph.config import settings
from decision_graph.db.models import Base


def make_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True)


engine = create_engine(settings.database_url, future=True)
SessionLocal = make_session_factory(engine)


def rebind_engine(database_url: str) -> Engine:
    global engine, SessionLocal
    engine = create_engine(database_url, future=True)
    SessionLocal = make_session_factory(engine)
    return engine


def init_db(bind: Engine | None = None) -> None:
    # Saves live in one table, so create_all stands in for migrations.
    Base.metadata.create_all(bind=bind or engine)
