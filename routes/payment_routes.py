from flask import Blueprint, request, jsonify, session
from init_db import db
from utils.auth import login_required, role_required, FINANCE_ROLES
from utils.error_handler import LedgerError, ValidationError, handle_ledger_error, handle_database_error
from utils.payment_allocator import PaymentAllocator
from utils.payment_recorder import record_payment, void_payment, get_student_credit_balance
from utils.logger import log_info

payment_bp = Blueprint('payments', __name__)


def _int_field(data, name, required=True):
    value = data.get(name)
    if value is None or value == '':
        if required:
            raise ValidationError(f"'{name}' is required")
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be an integer, got {value!r}")


# ---------------------------------------
# Route: Validate Payment
# ---------------------------------------
@payment_bp.route("/validate", methods=["POST"])
@login_required
@role_required(FINANCE_ROLES)
def validate_payment():
    """Check a tendered amount against the student's outstanding invoices"""
    try:
        data = request.get_json(silent=True) or {}
        result = PaymentAllocator().validate_payment(_int_field(data, 'student_id'), data.get('amount'))
        return jsonify({'success': True, **result})

    except LedgerError as e:
        return handle_ledger_error(e, "Validating Payment", module_name="Payments")
    except Exception as e:
        return handle_database_error(str(e), "Validating Payment", "Payments")


# ---------------------------------------
# Route: Record Payment
# ---------------------------------------
@payment_bp.route("", methods=["POST"])
@login_required
@role_required(FINANCE_ROLES)
def create_payment():
    """Record a payment and apply it oldest invoice first"""
    try:
        data = request.get_json(silent=True) or {}
        result = record_payment(
            student_id=_int_field(data, 'student_id'),
            amount=data.get('amount'),
            payment_method=data.get('payment_method'),
            transaction_date=data.get('transaction_date'),
            payment_reference=data.get('payment_reference'),
            invoice_id=_int_field(data, 'invoice_id', required=False),
            description=data.get('description'),
            idempotency_key=data.get('idempotency_key') or request.headers.get('Idempotency-Key'),
            account_code=data.get('account_code')
        )
        if not result['replayed']:
            log_info(f"User {session.get('user_id')} recorded payment {result['transaction']['transaction_ref']}")
        return jsonify({'success': True, **result}), 200 if result['replayed'] else 201

    except LedgerError as e:
        return handle_ledger_error(e, "Recording Payment", module_name="Payments")
    except Exception as e:
        db.session.rollback()
        return handle_database_error(str(e), "Recording Payment", "Payments")


# ---------------------------------------
# Route: Void Payment
# ---------------------------------------
@payment_bp.route("/<int:transaction_id>/void", methods=["POST"])
@login_required
@role_required(('admin', 'bursar'))
def void_payment_route(transaction_id):
    """Void a payment; the ledger row is kept for audit"""
    try:
        data = request.get_json(silent=True) or {}
        transaction = void_payment(transaction_id, data.get('reason'))
        log_info(f"User {session.get('user_id')} voided payment {transaction['transaction_ref']}")
        return jsonify({'success': True, 'transaction': transaction})

    except LedgerError as e:
        return handle_ledger_error(e, "Voiding Payment", module_name="Payments")
    except Exception as e:
        db.session.rollback()
        return handle_database_error(str(e), "Voiding Payment", "Payments")


@payment_bp.route("/students/<int:student_id>/credit")
@login_required
@role_required(FINANCE_ROLES)
def student_credit(student_id):
    try:
        return jsonify({'success': True, **get_student_credit_balance(student_id)})
    except LedgerError as e:
        return handle_ledger_error(e, "Loading Credit Balance", module_name="Payments")
