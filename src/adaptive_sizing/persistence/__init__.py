"""Persistence for sizing configuration and compound state."""

from .database import ConfigStore

__all__ = ["ConfigStore"]
