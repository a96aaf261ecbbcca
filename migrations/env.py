import logging
from logging.config import fileConfig
import importlib
import pkgutil
from pathlib import Path

from flask import current_app
from alembic import context

config = context.config

ini = config.config_file_name
if ini and Path(ini).exists():
    fileConfig(ini)
else:
    logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("alembic.env")


def get_engine():
    return current_app.extensions["migrate"].db.engine


def get_engine_url():
    return get_engine().url.render_as_string(hide_password=False).replace("%", "%%")


config.set_main_option("sqlalchemy.url", get_engine_url())
target_db = current_app.extensions["migrate"].db


def _load_models():
    """Import every payhook.models module so autogenerate sees all tables."""
    import payhook.models as models_pkg
    for m in pkgutil.iter_modules(models_pkg.__path__):
        importlib.import_module(f"payhook.models.{m.name}")


def run_migrations_offline():
    _load_models()
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_db.metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    # Skip empty autogenerate revisions
    def process_revision_directives(context_, revision, directives):
        if getattr(config.cmd_opts, "autogenerate", False):
            if directives[0].upgrade_ops.is_empty():
                directives[:] = []
                logger.info("No changes in schema detected.")

    conf_args = {
        **current_app.extensions["migrate"].configure_args,
        "process_revision_directives": process_revision_directives,
        "compare_type": True,
        "target_metadata": target_db.metadata,
    }
    _load_models()

    with get_engine().connect() as connection:
        context.configure(connection=connection, **conf_args)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
