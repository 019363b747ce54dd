"""
Database initialization module for the School Fee Ledger application
Handles SQLAlchemy setup and database creation
"""

from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy instance
db = SQLAlchemy()


def import_models():
    """Import all models to ensure they're registered with SQLAlchemy"""
    from models.student_model import Student
    from models.invoice_model import FeeInvoice
    from models.ledger_transaction_model import LedgerTransaction
    from models.payment_allocation_model import PaymentAllocation, CreditTransaction
    from models.collection_action_model import CollectionAction
    return [Student, FeeInvoice, LedgerTransaction, PaymentAllocation, CreditTransaction, CollectionAction]


def init_database(app):
    """
    Initialize database with the Flask app

    Tables are only created when missing; existing (possibly legacy) tables
    are never altered here.
    """
    from utils.logger import log_info
    from utils.schema_helper import clear_schema_cache

    with app.app_context():
        import_models()

        if app.config.get('AUTO_CREATE_TABLES', True):
            db.create_all()
            clear_schema_cache()
            log_info("Database initialized successfully")
