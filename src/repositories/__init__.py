"""
Repositories Layer
Analysis record persistence for PMF Scout.
"""
from .connection import DatabaseManager
from .analyses import AnalysisStore, InMemoryAnalysisStore, MongoAnalysisStore

__all__ = [
    "DatabaseManager",
    "AnalysisStore",
    "InMemoryAnalysisStore",
    "MongoAnalysisStore",
]
