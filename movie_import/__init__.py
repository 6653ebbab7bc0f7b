"""
Movie import pipeline - normalize a denormalized movie export.

This package provides tools for:
- Normalizing export rows (titles, years, money, genres, actors)
- Batched, resumable loading into director/genre/actor/country tables,
  movies and their junction tables
- Tolerating concurrent reference writers (duplicate names are not errors)
- Removing duplicate movies per (title, release year) in one transaction
"""

from .config import Config
from .database import DatabaseManager
from .exceptions import (
    PipelineError,
    ReconciliationError,
    ReferenceResolutionError,
    ReferenceWriteError,
    ResidualDuplicateWarning,
    SkipRow,
)
from .loader import BatchLoader
from .models import (
    ActorCredit,
    NormalizedRecord,
    PipelineStats,
    ReconcileResult,
    ReferenceKind,
    ResolutionPolicy,
    WriteOutcome,
)
from .normalizer import normalize_row
from .pipeline import MovieImportPipeline
from .reconciler import DuplicateReconciler

__version__ = "1.0.0"
__all__ = [
    "Config",
    "DatabaseManager",
    "BatchLoader",
    "DuplicateReconciler",
    "MovieImportPipeline",
    "normalize_row",
    "ActorCredit",
    "NormalizedRecord",
    "PipelineStats",
    "ReconcileResult",
    "ReferenceKind",
    "ResolutionPolicy",
    "WriteOutcome",
    "PipelineError",
    "SkipRow",
    "ReferenceWriteError",
    "ReferenceResolutionError",
    "ReconciliationError",
    "ResidualDuplicateWarning",
]
