"""
Dispatcher Module

Writes resolved materials to a project stage and keeps the stage's
realized value in step.
"""

from .linkage import LinkageReport, StageLinker

__all__ = ["LinkageReport", "StageLinker"]
