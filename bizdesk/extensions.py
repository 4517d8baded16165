"""
Flask extension instances shared by models, services and blueprints.

They are created unbound here and attached to the application in create_app(),
so importing a model or a service never needs an app object.
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()

# JSON API: unauthorized requests get a 401 body (see create_app), not a redirect
login_manager = LoginManager()
login_manager.session_protection = "strong"

# JSON clients send the token in the X-CSRFToken header
csrf = CSRFProtect()
