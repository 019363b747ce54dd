from flask import Blueprint, request, jsonify, session, send_file, Response
from init_db import db
from utils.auth import login_required, role_required, FINANCE_ROLES
from utils.aged_receivables_service import AgedReceivablesService
from utils.error_handler import LedgerError, ValidationError, handle_ledger_error, handle_database_error
from utils.timezone_helper import parse_date, get_current_local_date
from utils.logger import log_info
import os

collections_bp = Blueprint('collections', __name__)


def _as_of_arg():
    """Optional ?as_of=YYYY-MM-DD, defaulting to today in school time"""
    raw = request.args.get('as_of')
    if not raw:
        return get_current_local_date()
    parsed = parse_date(raw)
    if parsed is None:
        raise ValidationError(f"Invalid as_of date: {raw!r} (expected YYYY-MM-DD)")
    return parsed


def _send_export(filepath, mimetype):
    response = send_file(filepath, mimetype=mimetype, as_attachment=True,
                         download_name=os.path.basename(filepath))

    @response.call_on_close
    def remove_export():
        if os.path.exists(filepath):
            os.remove(filepath)

    return response


# ---------------------------------------
# Route: Aged Receivables
# ---------------------------------------
@collections_bp.route("/aged-receivables")
@login_required
@role_required(FINANCE_ROLES)
def aged_receivables():
    """Five aging buckets with their account rows"""
    try:
        as_of = _as_of_arg()
        buckets = AgedReceivablesService().calculate_aged_receivables(as_of)
        return jsonify({'success': True, 'as_of_date': as_of.isoformat(), 'buckets': buckets})
    except LedgerError as e:
        return handle_ledger_error(e, "Loading Aged Receivables", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Loading Aged Receivables", "Collections")


@collections_bp.route("/aging-summary")
@login_required
@role_required(FINANCE_ROLES)
def aging_summary():
    try:
        return jsonify({'success': True, **AgedReceivablesService().get_aging_summary(_as_of_arg())})
    except LedgerError as e:
        return handle_ledger_error(e, "Loading Aging Summary", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Loading Aging Summary", "Collections")


# ---------------------------------------
# Route: Exports
# ---------------------------------------
@collections_bp.route("/aged-receivables/export.csv")
@login_required
@role_required(FINANCE_ROLES)
def export_csv():
    try:
        as_of = _as_of_arg()
        csv_content = AgedReceivablesService().export_aged_receivables_csv(as_of)
        return Response(
            csv_content,
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename=aged_receivables_{as_of.strftime("%Y%m%d")}.csv'}
        )
    except LedgerError as e:
        return handle_ledger_error(e, "Exporting Aged Receivables CSV", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Exporting Aged Receivables CSV", "Collections")


@collections_bp.route("/aged-receivables/export.xlsx")
@login_required
@role_required(FINANCE_ROLES)
def export_excel():
    try:
        filepath = AgedReceivablesService().export_aged_receivables_excel(_as_of_arg())
        return _send_export(filepath, 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet')
    except LedgerError as e:
        return handle_ledger_error(e, "Exporting Aged Receivables Excel", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Exporting Aged Receivables Excel", "Collections")


@collections_bp.route("/aged-receivables/export.pdf")
@login_required
@role_required(FINANCE_ROLES)
def export_pdf():
    try:
        filepath = AgedReceivablesService().export_aged_receivables_pdf(_as_of_arg())
        return _send_export(filepath, 'application/pdf')
    except LedgerError as e:
        return handle_ledger_error(e, "Exporting Aged Receivables PDF", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Exporting Aged Receivables PDF", "Collections")


# ---------------------------------------
# Route: Priority and Top Overdue
# ---------------------------------------
@collections_bp.route("/top-overdue")
@login_required
@role_required(FINANCE_ROLES)
def top_overdue():
    try:
        limit = request.args.get('limit', type=int)
        if limit is not None and limit < 1:
            raise ValidationError("limit must be a positive integer")
        accounts = AgedReceivablesService().get_top_overdue_accounts(limit=limit, as_of=_as_of_arg())
        return jsonify({'success': True, 'accounts': accounts, 'count': len(accounts)})
    except LedgerError as e:
        return handle_ledger_error(e, "Loading Top Overdue Accounts", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Loading Top Overdue Accounts", "Collections")


@collections_bp.route("/high-priority")
@login_required
@role_required(FINANCE_ROLES)
def high_priority():
    try:
        invoices = AgedReceivablesService().get_high_priority_collections(_as_of_arg())
        return jsonify({'success': True, 'invoices': invoices, 'count': len(invoices)})
    except LedgerError as e:
        return handle_ledger_error(e, "Loading High Priority Collections", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Loading High Priority Collections", "Collections")


# ---------------------------------------
# Route: Reminders
# ---------------------------------------
@collections_bp.route("/reminders", methods=["POST"])
@login_required
@role_required(('admin', 'bursar'))
def run_reminders():
    """Daily reminder run; reminders go out only on threshold days"""
    try:
        result = AgedReceivablesService().run_collection_reminders(_as_of_arg())
        log_info(f"User {session.get('user_id')} ran collection reminders: {result['total']} issued")
        return jsonify({'success': True, **result})
    except LedgerError as e:
        return handle_ledger_error(e, "Generating Collection Reminders", module_name="Collections")
    except Exception as e:
        db.session.rollback()
        return handle_database_error(str(e), "Generating Collection Reminders", "Collections")


@collections_bp.route("/effectiveness")
@login_required
@role_required(FINANCE_ROLES)
def effectiveness():
    try:
        report = AgedReceivablesService().get_collections_effectiveness_report(_as_of_arg())
        return jsonify({'success': True, **report})
    except LedgerError as e:
        return handle_ledger_error(e, "Loading Collections Effectiveness", module_name="Collections")
    except Exception as e:
        return handle_database_error(str(e), "Loading Collections Effectiveness", "Collections")


# ---------------------------------------
# Route: Collection Actions
# ---------------------------------------
@collections_bp.route("/students/<int:student_id>/actions", methods=["GET", "POST"])
@login_required
@role_required(FINANCE_ROLES)
def student_actions(student_id):
    """Collection history for a student, or record a manual follow-up"""
    service = AgedReceivablesService()
    try:
        if request.method == "POST":
            data = request.get_json(silent=True) or {}
            action = service.record_collection_action(student_id, data.get('action_type'), data.get('notes'))
            log_info(f"User {session.get('user_id')} recorded {action.action_type} for student {student_id}")
            return jsonify({'success': True, 'action': action.to_dict()}), 201

        actions = service.get_collection_history(student_id)
        return jsonify({'success': True, 'actions': [action.to_dict() for action in actions]})
    except LedgerError as e:
        return handle_ledger_error(e, "Collection Actions", module_name="Collections")
    except Exception as e:
        db.session.rollback()
        return handle_database_error(str(e), "Collection Actions", "Collections")
