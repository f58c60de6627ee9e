import logging
import os

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request, session
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from database import db

load_dotenv()

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get(
    "DATABASE_URL", "sqlite:///projecttracker.db"
)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")
app.config["DUE_SOON_DAYS"] = int(os.environ.get("DUE_SOON_DAYS", "7"))
app.config.setdefault("ADMIN_EMAIL", os.environ.get("ADMIN_EMAIL"))
app.config.setdefault("ADMIN_PASSWORD", os.environ.get("ADMIN_PASSWORD"))

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

db.init_app(app)

# Models import should be after initializing db
from models.audit_log import AuditLog
from models.project import Project
from models.role import Role
from models.user import User

from routes.auth import auth_bp
from routes.dashboard import dashboard_bp
from routes.projects import projects_bp
from routes.roles import roles_bp
from routes.users import users_bp
from routes import json_error

# Create flask command lines to update the db based on the model
# Useage:
# Create a migration script in ./migrations/versions
# > flask db migrate -m "Update comments"
# Run the update
# > flask db upgrade
migrate = Migrate(app, db)
app.register_blueprint(auth_bp)
app.register_blueprint(projects_bp)
app.register_blueprint(roles_bp)
app.register_blueprint(users_bp)
app.register_blueprint(dashboard_bp)

# User Authentication
# ------------------------------
login_exempt_routes = ["auth.login", "auth.logout", "auth.register", "static", "health"]


@app.before_request
def require_login():
    """All routes require a User logged in, except the ones listed in login_exempt_routes

    This method excecutes before every request and checks if there is a user_id
    stored in session. If so, it sets the g.user that contains the object User which
    can be used in the subsecuent method. Inactive users are treated as logged out.

    Returns:
        A JSON 401 response if no user is found in session
    """
    user_id = session.get("user_id")
    g.user = db.session.get(User, user_id) if user_id else None
    if g.user is not None and not g.user.is_active:
        session.pop("user_id", None)
        g.user = None
    if g.user is None and request.endpoint and request.endpoint not in login_exempt_routes:
        return json_error("Please authenticate.", status=401)


@app.errorhandler(404)
def not_found(_error):
    return json_error("Route not found.", status=404)


@app.errorhandler(SQLAlchemyError)
def database_error(_error):
    db.session.rollback()
    logging.exception("Unhandled database error")
    return json_error("An internal error has occurred.", status=500)


@app.route("/health")
def health():
    return jsonify({"status": "OK"})


def initialize_database():
    """Create the default roles and, when configured, the admin user."""
    Role.create_default_roles()
    db.session.flush()

    admin_email = app.config.get("ADMIN_EMAIL")
    admin_password = app.config.get("ADMIN_PASSWORD")
    if admin_email and admin_password:
        admin = User.query.filter_by(email=admin_email).first()
        if admin is None:
            admin_role = Role.query.filter_by(name=Role.ADMIN).one()
            admin = User(
                username=admin_email.split("@", 1)[0],
                name="System Administrator",
                email=admin_email,
                department="Administration",
                role=admin_role,
            )
            admin.set_password(admin_password)
            db.session.add(admin)
            logging.info("Admin user %s created", admin_email)
    db.session.commit()


@app.cli.command("init-db")
def init_db_command():
    """Create tables and seed default roles."""
    db.create_all()
    initialize_database()
    logging.info("Database initialized")


# Application Execution
# ------------------------------
if __name__ == "__main__":
    app.run(debug=True)
