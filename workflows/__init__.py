"""
RAVEN Workflows Package
Workflow steps for preparing RAVEN model inputs

Available Steps:
- clean_hrus: merge or drop HRUs below an area fraction of their subbasin
"""

from .steps import (
    WorkflowStep,
    HRUCleaningStep,
    get_step,
    list_available_steps,
    STEP_REGISTRY
)

__all__ = [
    'WorkflowStep',
    'HRUCleaningStep',
    'get_step',
    'list_available_steps',
    'STEP_REGISTRY'
]
