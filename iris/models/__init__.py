"""
IRIS Research Administration
Database instance and model registry.

All models import ``db`` from here; ``create_app`` calls ``db.init_app``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
