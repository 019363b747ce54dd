"""
Ledger transaction vocabulary on the read side

Any aggregate over student fee collections (totals, last payment date,
effectiveness) filters through build_collection_predicate so that legacy
spellings of the payment type are counted and voided rows never are.
"""

from datetime import timedelta

from sqlalchemy import text

from init_db import db
from utils.error_handler import ValidationError
from utils.finance_vocabulary import collection_type_spellings, sql_in_list
from utils.logger import log_warning
from utils.schema_helper import column_exists, is_safe_identifier, table_exists

LEDGER_TABLE = 'ledger_transactions'


def build_not_voided_predicate(alias='lt'):
    """Voided rows stay for audit but are excluded from every aggregate"""
    if not is_safe_identifier(alias):
        raise ValidationError(f"Unsafe SQL alias: {alias!r}")
    if not column_exists(LEDGER_TABLE, 'is_voided'):
        return '1=1'
    if db.engine.dialect.name == 'postgresql':
        return f"{alias}.is_voided IS NOT TRUE"
    return f"COALESCE({alias}.is_voided, 0) = 0"


def build_collection_type_predicate(alias='lt'):
    if not is_safe_identifier(alias):
        raise ValidationError(f"Unsafe SQL alias: {alias!r}")
    return (
        f"UPPER(TRIM(COALESCE({alias}.transaction_type, ''))) "
        f"IN ({sql_in_list(collection_type_spellings())})"
    )


def build_collection_predicate(alias='lt'):
    """Canonical student fee collection that has not been voided"""
    return f"({build_collection_type_predicate(alias)}) AND ({build_not_voided_predicate(alias)})"


def get_collection_metrics(start_date, end_date, session=None):
    """
    Count, total, average and paying students for collections in a date range

    Args:
        start_date (date): first day included
        end_date (date): last day included

    Returns:
        dict: total_payments, total_amount_collected, average_payment,
              unique_students_paying
    """
    session = session or db.session
    empty = {
        'total_payments': 0,
        'total_amount_collected': 0.0,
        'average_payment': 0.0,
        'unique_students_paying': 0,
    }
    if not table_exists(LEDGER_TABLE):
        log_warning(f"Table '{LEDGER_TABLE}' does not exist; reporting no collections")
        return empty

    row = session.execute(text(f"""
        SELECT
            COUNT(*) AS total_payments,
            SUM(lt.amount) AS total_amount_collected,
            AVG(lt.amount) AS average_payment,
            COUNT(DISTINCT lt.student_id) AS unique_students_paying
        FROM {LEDGER_TABLE} lt
        WHERE {build_collection_predicate('lt')}
          AND lt.transaction_date >= :start_date
          AND lt.transaction_date < :day_after_end
    """), {
        'start_date': start_date.isoformat(),
        # Timestamps stored as text sort after the bare date
        'day_after_end': (end_date + timedelta(days=1)).isoformat(),
    }).mappings().first()

    if row is None:
        return empty

    return {
        'total_payments': int(row['total_payments'] or 0),
        'total_amount_collected': round(float(row['total_amount_collected'] or 0), 2),
        'average_payment': round(float(row['average_payment'] or 0), 2),
        'unique_students_paying': int(row['unique_students_paying'] or 0),
    }
