from contextlib import contextmanager
from typing import Generator, Iterator, Optional

from sqlmodel import SQLModel, create_engine, Session as SQLModelSession
from sqlalchemy.orm import sessionmaker

from pos_api.settings import DATABASE_URL

# solo sqlite necesita check_same_thread
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)

# IMPORTANT: class_=SQLModelSession para que SessionLocal() devuelva sqlmodel.Session (con .exec)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=SQLModelSession)


def init_db() -> None:
    # importa los modelos para registrar las tablas en el metadata
    from pos_api import models  # noqa: F401

    SQLModel.metadata.create_all(bind=engine)


def get_session() -> Generator[SQLModelSession, None, None]:
    db: Optional[SQLModelSession] = None
    try:
        db = SessionLocal()
        yield db
    finally:
        if db is not None:
            db.close()


@contextmanager
def transaction(db: SQLModelSession) -> Iterator[SQLModelSession]:
    """
    Unidad de trabajo: confirma todo al salir o revierte todo si algo falla.
    Las escrituras de varios pasos (orden + detalle + inventario, etc.) deben
    hacerse dentro de este bloque.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
