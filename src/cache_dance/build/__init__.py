"""
Helper image builds that move data in and out of cache mounts.
"""

from .engine import BuildRequest, CommandResult, ContainerEngine
from .transfer import extract_one, inject_one

__all__ = [
    "BuildRequest",
    "CommandResult",
    "ContainerEngine",
    "extract_one",
    "inject_one",
]
