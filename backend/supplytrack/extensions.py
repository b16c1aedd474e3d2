# Overview: Flask extension instances for database, migrations and the pinning client.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.pinning_service import PinningClient

db = SQLAlchemy()
migrate = Migrate()
pinning = PinningClient()
