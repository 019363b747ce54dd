"""
Outstanding-balance normalization for fee invoices

Invoices have carried their billed and paid amounts under different columns
across schema generations. This module is the only place that knows which
column means what; every report composes the SQL fragments built here so
they all agree on which invoices are outstanding and for how much.

Fallback order (first present column wins, non-zero values preferred):
    billed amount: total_amount, amount_due, amount
    paid amount:   amount_paid, paid_amount
"""

from collections import namedtuple

from init_db import db
from utils.error_handler import ConsistencyError, ValidationError
from utils.finance_vocabulary import (
    CANCELLED_INVOICE_STATUSES, DEFAULT_INVOICE_STATUS, OUTSTANDING_INVOICE_STATUSES,
    InvoiceStatus, canonical_invoice_status, sql_in_list
)
from utils.logger import log_debug
from utils.schema_helper import column_exists, existing_columns, is_safe_identifier, table_exists

FEE_INVOICE_TABLE = 'fee_invoices'

BILLED_AMOUNT_COLUMNS = ('total_amount', 'amount_due', 'amount')
PAID_AMOUNT_COLUMNS = ('amount_paid', 'paid_amount')
INVOICE_DATE_COLUMNS = ('invoice_date', 'created_at', 'due_date')
INVOICE_ORDER_COLUMNS = ('due_date', 'invoice_date', 'created_at')

# Columns holding a timestamp rather than a plain date
TIMESTAMP_COLUMNS = ('created_at',)

NormalizedInvoiceSql = namedtuple(
    'NormalizedInvoiceSql',
    ['amount', 'paid_amount', 'balance', 'status', 'outstanding_predicate', 'order_by']
)


def _check_alias(alias):
    if not is_safe_identifier(alias):
        raise ValidationError(f"Unsafe SQL alias: {alias!r}")


def _require_invoice_table():
    if not table_exists(FEE_INVOICE_TABLE):
        raise ConsistencyError(f"Table '{FEE_INVOICE_TABLE}' does not exist; receivables cannot be computed")


def _text_cast(expression):
    """Dialect-portable cast to text"""
    if db.engine.dialect.name == 'mysql':
        return f"CAST({expression} AS CHAR)"
    return f"CAST({expression} AS TEXT)"


def sql_coalesce(expressions):
    """COALESCE over the given expressions; a lone expression is returned as is"""
    expressions = list(expressions)
    if len(expressions) == 1:
        return expressions[0]
    return f"COALESCE({', '.join(expressions)})"


def _date_part(alias, column):
    if column in TIMESTAMP_COLUMNS:
        return f"SUBSTR({_text_cast(f'{alias}.{column}')}, 1, 10)"
    return f"{alias}.{column}"


def billed_amount_columns():
    _require_invoice_table()
    return existing_columns(FEE_INVOICE_TABLE, BILLED_AMOUNT_COLUMNS)


def paid_amount_columns():
    _require_invoice_table()
    return existing_columns(FEE_INVOICE_TABLE, PAID_AMOUNT_COLUMNS)


def build_invoice_amount_sql(alias='fi'):
    """
    Billed amount of an invoice

    Zero in a newer column usually means the row was written by an older
    generation, so non-zero values are tried first, then raw values.

    Raises:
        ConsistencyError: if no billed-amount column exists at all
    """
    _check_alias(alias)
    columns = billed_amount_columns()
    if not columns:
        raise ConsistencyError(
            f"No billed-amount column ({', '.join(BILLED_AMOUNT_COLUMNS)}) found on '{FEE_INVOICE_TABLE}'"
        )

    candidates = [f"NULLIF({alias}.{column}, 0)" for column in columns]
    candidates += [f"{alias}.{column}" for column in columns]
    return f"COALESCE({', '.join(candidates)}, 0)"


def build_invoice_paid_amount_sql(alias='fi'):
    _check_alias(alias)
    columns = paid_amount_columns()
    if not columns:
        log_debug(f"No paid-amount column on '{FEE_INVOICE_TABLE}'; treating paid amount as 0")
        return '0'
    return f"COALESCE({', '.join(f'{alias}.{column}' for column in columns)}, 0)"


def build_outstanding_balance_sql(alias='fi'):
    return f"(({build_invoice_amount_sql(alias)}) - ({build_invoice_paid_amount_sql(alias)}))"


def build_invoice_status_sql(alias='fi', fallback_status=DEFAULT_INVOICE_STATUS):
    """Upper-cased stored status, or the fallback when the column is absent"""
    _check_alias(alias)
    escaped_fallback = fallback_status.replace("'", "''")
    if not column_exists(FEE_INVOICE_TABLE, 'status'):
        return f"'{escaped_fallback}'"
    return f"UPPER(COALESCE({_text_cast(f'{alias}.status')}, '{escaped_fallback}'))"


def build_active_status_predicate(alias='fi'):
    """True for every invoice that is not cancelled or voided"""
    if not column_exists(FEE_INVOICE_TABLE, 'status'):
        return '1=1'
    return f"{build_invoice_status_sql(alias)} NOT IN ({sql_in_list(CANCELLED_INVOICE_STATUSES)})"


def build_outstanding_status_predicate(alias='fi'):
    """True for invoices whose status still expects money"""
    if not column_exists(FEE_INVOICE_TABLE, 'status'):
        return '1=1'
    status_sql = build_invoice_status_sql(alias)
    return (
        f"{status_sql} IN ({sql_in_list(OUTSTANDING_INVOICE_STATUSES)}) "
        f"AND {status_sql} NOT IN ({sql_in_list(CANCELLED_INVOICE_STATUSES)})"
    )


def build_outstanding_invoice_predicate(alias='fi'):
    """The one "counts as outstanding" predicate used by every report"""
    return f"({build_outstanding_status_predicate(alias)}) AND ({build_outstanding_balance_sql(alias)}) > 0"


def build_invoice_date_sql(alias='fi'):
    """Issue date of an invoice: invoice_date, then created_at, then due_date"""
    _check_alias(alias)
    _require_invoice_table()
    columns = existing_columns(FEE_INVOICE_TABLE, INVOICE_DATE_COLUMNS)
    if not columns:
        raise ValidationError(
            f"'{FEE_INVOICE_TABLE}' has none of the date columns {', '.join(INVOICE_DATE_COLUMNS)}"
        )
    return sql_coalesce(_date_part(alias, column) for column in columns)


def build_invoice_order_sql(alias='fi'):
    """Oldest obligation first: due date, then invoice date, then creation date"""
    _check_alias(alias)
    _require_invoice_table()
    columns = existing_columns(FEE_INVOICE_TABLE, INVOICE_ORDER_COLUMNS)
    if not columns:
        return f"{alias}.id ASC"
    return f"{sql_coalesce(_date_part(alias, column) for column in columns)} ASC, {alias}.id ASC"


def require_due_date_column():
    _require_invoice_table()
    if not column_exists(FEE_INVOICE_TABLE, 'due_date'):
        raise ValidationError(f"'{FEE_INVOICE_TABLE}' has no due_date column; invoices cannot be aged")


def build_normalized_invoice_sql(alias='fi'):
    """All normalized fragments for one alias, built against the current schema"""
    return NormalizedInvoiceSql(
        amount=build_invoice_amount_sql(alias),
        paid_amount=build_invoice_paid_amount_sql(alias),
        balance=build_outstanding_balance_sql(alias),
        status=build_invoice_status_sql(alias),
        outstanding_predicate=build_outstanding_invoice_predicate(alias),
        order_by=build_invoice_order_sql(alias),
    )


def outstanding_balance(billed_amount, paid_amount, status=None):
    """
    Python-side counterpart of build_outstanding_balance_sql

    Cancelled invoices owe nothing whatever their stored amounts say, and the
    result never goes below zero.
    """
    if canonical_invoice_status(status) == InvoiceStatus.CANCELLED:
        return 0.0
    return max(float(billed_amount or 0) - float(paid_amount or 0), 0.0)
