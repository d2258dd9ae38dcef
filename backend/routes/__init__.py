# routes/__init__.py
"""
Blueprint registration helper
"""

def register_blueprints(app):
    """Register all application blueprints"""
    from routes.health import health_bp
    from routes.metadata import metadata_bp
    from routes.library import library_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(metadata_bp)
    app.register_blueprint(library_bp)
