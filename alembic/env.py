from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
from bookstore.core.config import settings
from bookstore.db.session import Base
import bookstore.db.models  # noqa

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

VERSION_TABLE = "alembic_version_bookstore"

def _dsn() -> str:
    # -x dsn=... wins over POSTGRES_DSN
    return context.get_x_argument(as_dictionary=True).get("dsn") or settings.POSTGRES_DSN

def _options(dsn: str) -> dict:
    return {
        "target_metadata": target_metadata,
        "version_table": VERSION_TABLE,
        "compare_type": True,
        # SQLite cannot ALTER most columns in place
        "render_as_batch": dsn.startswith("sqlite"),
    }

def run_migrations_offline():
    dsn = _dsn()
    context.configure(url=dsn, literal_binds=True, dialect_opts={"paramstyle": "named"}, **_options(dsn))
    with context.begin_transaction():
        context.run_migrations()

def run_migrations_online():
    dsn = _dsn()
    connectable = engine_from_config({"sqlalchemy.url": dsn}, prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_options(dsn))
        with context.begin_transaction():
            context.run_migrations()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
