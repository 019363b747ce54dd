"""
Error types and JSON error reporting for the fee ledger

Every error raised by the ledger engine derives from LedgerError so routes
can report it with a tracking id instead of a bare traceback.
"""

import uuid

from flask import jsonify, request

from utils.logger import log_error


class LedgerError(Exception):
    """Base class for all fee ledger errors"""
    status_code = 500
    error_type = "LedgerError"

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {
            'error_type': self.error_type,
            'message': self.message
        }


class ValidationError(LedgerError):
    """Bad input or an unusable schema; never retried automatically"""
    status_code = 400
    error_type = "ValidationError"


class NotFoundError(LedgerError):
    """Referenced student, invoice or transaction does not exist"""
    status_code = 404
    error_type = "NotFoundError"


class ConsistencyError(LedgerError):
    """Ledger state cannot be computed safely (e.g. no balance columns)"""
    status_code = 500
    error_type = "ConsistencyError"


def generate_error_report(error_message, module_name, action_attempted, error_type="SystemError", status_code=500):
    """
    Build a JSON error report with a unique id for easy debugging

    Args:
        error_message (str): The actual error message
        module_name (str): Module where the error occurred (e.g. "Collections")
        action_attempted (str): What the caller was doing (e.g. "Recording Payment")
        error_type (str): Type of error
        status_code (int): HTTP status to return

    Returns:
        tuple: (json response, status code)
    """
    # Generate unique error ID for tracking
    error_id = str(uuid.uuid4())[:8].upper()

    request_route = request.endpoint if request else 'Unknown'

    log_error(
        f"Error ID {error_id}: {error_message} | Module: {module_name} | "
        f"Action: {action_attempted} | Route: {request_route}"
    )

    return jsonify({
        'success': False,
        'error_id': error_id,
        'error_type': error_type,
        'module': module_name,
        'action': action_attempted,
        'message': error_message
    }), status_code


def handle_ledger_error(error, action_attempted, module_name="Finance"):
    """Convenience function for LedgerError subclasses"""
    return generate_error_report(
        error_message=error.message,
        module_name=module_name,
        action_attempted=action_attempted,
        error_type=error.error_type,
        status_code=error.status_code
    )


def handle_database_error(error_message, action_attempted, module_name):
    """Convenience function for database-related errors"""
    return generate_error_report(
        error_message=error_message,
        module_name=module_name,
        action_attempted=action_attempted,
        error_type="DatabaseError"
    )


def register_error_handlers(app):
    """Report any LedgerError escaping a view as JSON"""

    @app.errorhandler(LedgerError)
    def ledger_error(error):
        return handle_ledger_error(error, request.endpoint or 'Unknown', module_name="Ledger")
