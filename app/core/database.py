# app/core/database.py
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

Base = declarative_base()


def build_session_factory(database_url: str, echo: bool = False) -> sessionmaker:
    """Crée le moteur et la fabrique de sessions pour une URL donnée"""
    kwargs = {"echo": echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        # Les tâches de déploiement tournent dans d'autres threads
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_recycle"] = 300

    engine = create_engine(database_url, **kwargs)
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )


class DatabaseManager:
    """Singleton pour la gestion de la base de données"""
    _instance = None
    _engine: Optional[Engine] = None
    _session_factory: Optional[sessionmaker] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(DatabaseManager, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._engine is None:
            self._initialize_database()

    def _initialize_database(self):
        """Initialise la connexion à la base de données"""
        from app.config import settings

        self._session_factory = build_session_factory(settings.DATABASE_URL)
        self._engine = self._session_factory.kw["bind"]

    @property
    def session_factory(self) -> sessionmaker:
        return self._session_factory

    def create_tables(self):
        """Crée toutes les tables"""
        import app.models  # noqa: F401  enregistre les modèles sur Base

        Base.metadata.create_all(bind=self._engine)


_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Retourne le gestionnaire de base de données (initialisé à la demande)"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Ouvre une session dédiée, fermée en sortie de bloc"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
