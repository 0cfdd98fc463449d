"""
RAVEN Workflow Steps Library

Step Categories:
- hru_cleaning_step: HRU consolidation for one or more area thresholds
"""

from .base_step import WorkflowStep

from .hru_cleaning_step import (
    HRUCleaningStep
)

# Step registry
STEP_REGISTRY = {
    'clean_hrus': HRUCleaningStep
}

def get_step(step_name: str):
    """
    Get step instance by name

    Parameters:
    -----------
    step_name : str
        Name of the step from STEP_REGISTRY

    Returns:
    --------
    WorkflowStep instance
    """
    if step_name not in STEP_REGISTRY:
        available_steps = list(STEP_REGISTRY.keys())
        raise ValueError(f"Unknown step: {step_name}. Available steps: {available_steps}")

    return STEP_REGISTRY[step_name]()

def list_available_steps() -> list:
    """List all available step names"""
    return list(STEP_REGISTRY.keys())

__all__ = [
    'WorkflowStep',
    'HRUCleaningStep',
    'get_step',
    'list_available_steps',
    'STEP_REGISTRY'
]
