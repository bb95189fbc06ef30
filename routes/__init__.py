from .signing import signing_bp
from .proxy import proxy_bp


def register_blueprints(app):
    app.register_blueprint(signing_bp)
    if app.config.get('DEV_PROXY_ENABLED'):
        app.register_blueprint(proxy_bp)
