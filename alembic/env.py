"""
Ambiente do Alembic para o schema do KitRunner.

A URL vem de sqlalchemy.url quando definida (testes), senão do
DATABASE_URL carregado por AppConfig.
"""
from logging.config import fileConfig

from alembic import context

from kitrunner.config import AppConfig
from kitrunner.storage import models  # noqa: F401
from kitrunner.storage.database import Base, create_engine_from_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_url() -> str:
    return config.get_main_option("sqlalchemy.url") or AppConfig.load_from_env().database_url


def run_migrations_offline() -> None:
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine_from_url(get_url())
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
