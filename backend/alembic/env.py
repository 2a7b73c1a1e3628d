import sys
from logging.config import fileConfig

from alembic import context
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, text

sys.path.append(".")

from app import models  # noqa: E402,F401
from app.config import settings  # noqa: E402
from app.database import Base  # noqa: E402

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def _stamp_sqlite_if_bootstrapped(connection) -> None:
    # Local SQLite DBs are often created via Base.metadata.create_all(); if the
    # schema is already there but alembic_version is empty, stamp head.
    if connection.dialect.name != "sqlite":
        return
    connection.execute(
        text(
            "CREATE TABLE IF NOT EXISTS alembic_version ("
            " version_num VARCHAR(128) NOT NULL,"
            " CONSTRAINT alembic_version_pkc PRIMARY KEY (version_num))"
        )
    )
    count = int(connection.execute(text("select count(*) from alembic_version")).scalar() or 0)
    if count:
        connection.commit()
        return
    orders_exists = bool(
        connection.execute(
            text("select 1 from sqlite_master where type='table' and name='pooled_orders' limit 1")
        ).scalar()
    )
    if orders_exists:
        head = ScriptDirectory.from_config(config).get_current_head()
        if head:
            connection.execute(
                text("insert into alembic_version(version_num) values (:v)"), {"v": head}
            )
    connection.commit()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    provided_connection = config.attributes.get("connection")

    if provided_connection is not None:
        connection = provided_connection
        should_close = False
    else:
        connectable = create_engine(settings.database_url, future=True)
        connection = connectable.connect()
        should_close = True

    try:
        _stamp_sqlite_if_bootstrapped(connection)

        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()
    finally:
        if should_close:
            connection.close()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
