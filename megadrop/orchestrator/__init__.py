"""Orchestrator package - single and batch upload workflows."""
from .core import UploadOrchestrator, generate_upload_id
from .batch import BatchCoordinator

__all__ = ["UploadOrchestrator", "BatchCoordinator", "generate_upload_id"]
