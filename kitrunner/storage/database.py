import logging
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _on_sqlite_connect(dbapi_conn, _conn_record):
    # SQLite só respeita FOREIGN KEY com o pragma ligado
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys = ON;")
    cur.close()


def create_engine_from_url(database_url: str):
    """
    Cria um engine SQLAlchemy a partir de uma URL de banco de dados.

    Para PostgreSQL, usa pool_pre_ping=True para detectar conexões perdidas.
    Para SQLite em memória, usa StaticPool para que todas as sessões
    enxerguem o mesmo banco.
    """
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    is_postgres = "postgresql" in database_url.lower()

    if is_postgres:
        engine = create_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,  # Verifica conexões antes de usar
            pool_size=5,
            max_overflow=10,
        )
        logger.info("Engine PostgreSQL criado com pool_pre_ping=True")
        return engine

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        logger.info("Engine SQLite em memória criado")
    else:
        engine = create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
        )
        logger.info("Engine SQLite criado")

    event.listen(engine, "connect", _on_sqlite_connect)
    return engine


def create_session_factory(database_url: str, create_tables: bool = False) -> sessionmaker:
    """
    Cria a factory de sessões usada pelo SqlAlchemyRepository.

    create_tables=True gera o schema a partir dos modelos (dev e testes).
    Em produção o schema vem das migrações: `alembic upgrade head`.
    """
    engine = create_engine_from_url(database_url)

    if create_tables:
        # Registra as tabelas no metadata antes do create_all
        from . import models  # noqa: F401
        Base.metadata.create_all(bind=engine)
        logger.info(f"Tabelas criadas: {sorted(Base.metadata.tables)}")

    return sessionmaker(bind=engine, expire_on_commit=False)
