"""
sheetsync kernel - shared infrastructure.

Typed exceptions, structured logging, the injectable clock, and the
SQLAlchemy persistence layer for the reference organisation-unit target.
Nothing in the kernel imports from sheetsync_ingestion or sheetsync_config.
"""

__version__ = "0.1.0"
