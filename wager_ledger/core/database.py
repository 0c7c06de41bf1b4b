import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from wager_ledger.core.config import settings
from wager_ledger.core.errors import StorageUnavailable

logger = logging.getLogger(__name__)


def make_engine(url: str, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, echo=settings.DEBUG, pool_pre_ping=True, **kwargs)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_database(bind=None):
    # models register themselves on Base.metadata when imported
    import wager_ledger.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def ledger_transaction(db: Session):
    """All-or-nothing unit of work.

    Commits on success. Any exception rolls back everything staged in the
    block; storage failures are re-raised as StorageUnavailable while
    ledger errors and integrity violations propagate unchanged.
    """
    try:
        yield db
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Transaction rolled back, storage error: %s", e, exc_info=True)
        raise StorageUnavailable("Storage is unavailable, nothing was applied") from e
    except Exception:
        db.rollback()
        raise
