"""
Infrastructure package for path management and cleaning configuration.
"""

from .path_manager import AbsolutePathManager, PathResolutionError, FileAccessError
from .configuration_manager import (
    ConfigurationManager,
    ConfigurationError,
    HRUCleaningConfig,
    CleaningWorkflowConfiguration
)

__all__ = [
    'AbsolutePathManager',
    'PathResolutionError',
    'FileAccessError',
    'ConfigurationManager',
    'ConfigurationError',
    'HRUCleaningConfig',
    'CleaningWorkflowConfiguration'
]
