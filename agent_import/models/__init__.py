"""Domain models for the bulk agent import pipeline."""

from .config_models import DatabaseConfig, ImportConfig
from .entities import Agent, AgentStatus, Channel, Designation, NewAgent, Project, User
from .import_result import CreatedAgent, ImportResult, RunStats
from .import_row import ImportRow
from .validation_error import GENERAL_FIELD, ValidationError

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    # Entities
    "Agent",
    "AgentStatus",
    "Channel",
    "Designation",
    "NewAgent",
    "Project",
    "User",
    # Processing models
    "CreatedAgent",
    "GENERAL_FIELD",
    "ImportResult",
    "ImportRow",
    "RunStats",
    "ValidationError",
]
