# NEXSE Fleet Map: database models
# Import all models here for SQLAlchemy discovery

from app.models.document import Document   # noqa
