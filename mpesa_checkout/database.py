from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

Base = declarative_base()


def create_session_factory(database_url: str) -> sessionmaker:
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Check your .env file.")

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
        pool_pre_ping=True,
    )
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db(session_factory: sessionmaker) -> None:
    # Import registers the tables on Base.metadata
    from mpesa_checkout import models  # noqa: F401

    with session_factory() as db:
        Base.metadata.create_all(bind=db.get_bind())


def get_db(request: Request) -> Iterator[Session]:
    """One session per request, closed once the response is produced."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
