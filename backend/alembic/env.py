"""
Alembic environment for the charter schema.

Migrations run over the synchronous DATABASE_URL_SYNC; `alembic upgrade --sql`
renders them offline for review before a deploy.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

import charter.models  # noqa: F401 - registers every table on Base.metadata
from charter.core.config import get_settings
from charter.db.base import Base

config = context.config
config.set_main_option("sqlalchemy.url", get_settings().DATABASE_URL_SYNC)
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# compare_type catches Numeric precision and status length changes in autogenerate
options = {"target_metadata": Base.metadata, "compare_type": True}

if context.is_offline_mode():
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **options,
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(connection=connection, **options)
        with context.begin_transaction():
            context.run_migrations()
