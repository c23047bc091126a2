from .home_routes import home_bp
from .menu_routes import menu_bp
from .dining_routes import dining_bp
from .admin_routes import admin_bp

def register_routes(app):
    app.register_blueprint(home_bp)
    app.register_blueprint(menu_bp)
    app.register_blueprint(dining_bp)
    app.register_blueprint(admin_bp)
