"""
Schema inspection helpers

Column presence is looked up once per engine and cached, so query builders
can adapt to whichever schema generation a database was created with.
"""

import re
import weakref

from sqlalchemy import inspect

from init_db import db
from utils.logger import log_debug

IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_]\w*$')

_schema_cache = weakref.WeakKeyDictionary()


def is_safe_identifier(value):
    return bool(value) and IDENTIFIER_PATTERN.match(value) is not None


def _get_cache(engine):
    cache = _schema_cache.get(engine)
    if cache is None:
        cache = {}
        _schema_cache[engine] = cache
    return cache


def clear_schema_cache(engine=None):
    """Forget cached schema facts (all engines when none is given)"""
    if engine is None:
        _schema_cache.clear()
    else:
        _schema_cache.pop(engine, None)


def get_table_columns(table_name, engine=None):
    """
    Return the set of column names of a table, or None if it does not exist

    Unsafe identifiers are treated as absent tables.
    """
    if not is_safe_identifier(table_name):
        return None

    engine = engine or db.engine
    cache = _get_cache(engine)
    key = f"table:{table_name}"
    if key in cache:
        return cache[key]

    inspector = inspect(engine)
    if inspector.has_table(table_name):
        columns = frozenset(column['name'] for column in inspector.get_columns(table_name))
    else:
        columns = None

    log_debug(f"Schema for {table_name}: {sorted(columns) if columns else 'missing'}")
    cache[key] = columns
    return columns


def table_exists(table_name, engine=None):
    return get_table_columns(table_name, engine) is not None


def column_exists(table_name, column_name, engine=None):
    if not is_safe_identifier(column_name):
        return False
    columns = get_table_columns(table_name, engine)
    return columns is not None and column_name in columns


def existing_columns(table_name, candidates, engine=None):
    """Filter candidates down to the columns present, keeping their order"""
    return [column for column in candidates if column_exists(table_name, column, engine)]
