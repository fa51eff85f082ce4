"""Shared Flask extension singletons to avoid circular imports."""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager

# Initialize extensions without app; app_factory will bind them.
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
