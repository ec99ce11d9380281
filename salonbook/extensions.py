"""Shared Flask extensions for the booking engine."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

# SQLAlchemy database instance shared by the models, ledger and orchestrator.
db = SQLAlchemy()
