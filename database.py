"""
=============================================================================
DATABASE.PY — Configuración de la Base de Datos
=============================================================================
Conexión a la base de datos de los desafíos.

En DESARROLLO: SQLite (archivo plounix.db)
En PRODUCCIÓN: PostgreSQL (variable de entorno DATABASE_URL)

Variables de entorno:
  DATABASE_URL      → cadena de conexión
  DB_ECHO           → "true" para ver el SQL en el log
  DB_POOL_SIZE      → conexiones fijas del pool (solo PostgreSQL)
  DB_MAX_OVERFLOW   → conexiones extra en picos (solo PostgreSQL)

Las reglas "un solo desafío activo por usuario" y "un check-in por día"
las garantiza la BD con índices únicos, no el código.
"""

import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base


def normalize_database_url(url: str) -> str:
    """
    Los proveedores dan la URL como "postgres://..." y SQLAlchemy con
    psycopg (v3) necesita "postgresql+psycopg://...". Las demás no se tocan.
    """
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def engine_options(url: str, echo: bool = False, pool_size: int = 5, max_overflow: int = 10) -> dict:
    """Argumentos de create_engine según el motor"""
    if url.startswith("sqlite"):
        # FastAPI atiende peticiones en varios hilos
        return {"echo": echo, "connect_args": {"check_same_thread": False}}

    return {
        "echo": echo,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
    }


# ─────────────────────────────────────────────────────────────────────────────
# ENGINE + SESSION
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./plounix.db"))

engine = create_engine(
    DATABASE_URL,
    **engine_options(
        DATABASE_URL,
        echo=os.getenv("DB_ECHO", "false").lower() in ("1", "true", "yes"),
        pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
    )
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependencia de FastAPI: una sesión por petición, cerrada al terminar"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    Sesión para trabajo fuera de una petición (arranque, scheduler).
    Si algo falla se hace rollback y la excepción sigue su camino.

      with session_scope() as db:
          seed_challenges(db)
    """
    db = (factory or SessionLocal)()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """Crea las tablas si no existen (incluye los índices únicos parciales)"""
    import models  # noqa: F401  registra las tablas en Base.metadata

    Base.metadata.create_all(bind=engine)
