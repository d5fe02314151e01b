"""Orchestrator package - coordinates concurrent upload batches."""
from .core import UploadOrchestrator

__all__ = ["UploadOrchestrator"]
