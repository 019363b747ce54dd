from .payment_routes import payment_bp
from .collections_routes import collections_bp


def init_routes(app):
    app.register_blueprint(payment_bp, url_prefix="/payments")
    app.register_blueprint(collections_bp, url_prefix="/collections")
