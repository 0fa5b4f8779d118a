"""
Output Handler Module for the Invoice Engine.

Persists one write-once observability record per pipeline run.
"""

from .run_store import PipelineRunStore, RUN_COLUMNS, COLUMN_NAMES

__all__ = ['PipelineRunStore', 'RUN_COLUMNS', 'COLUMN_NAMES']
