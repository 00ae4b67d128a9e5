# hivecrop/db.py
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _is_memory_sqlite(url) -> bool:
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


class Database:
    """
    Persistence client: owns the engine and the session factory.
    Built once at startup (see main.lifespan) and disposed at shutdown.
    """

    def __init__(self, database_url: str, *, echo: bool = False):
        url = make_url(database_url)
        kwargs: dict = {"echo": echo}
        if url.get_backend_name() == "sqlite":
            # request handlers run on the threadpool
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(url):
                # one shared connection, otherwise every checkout sees an empty db
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True

        self.url = url
        self.engine = create_engine(url, **kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @property
    def redacted_url(self) -> str:
        return self.url.render_as_string(hide_password=True)

    def create_all(self) -> None:
        # models register themselves on Base.metadata at import
        from hivecrop import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database ping failed: {e}")
            return False

    def dispose(self) -> None:
        self.engine.dispose()
