"""
Base class for all workflow steps

This module defines the common interface and functionality that all workflow steps
must implement. It provides logging, input validation and execution timing.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List
from pathlib import Path
import logging
from datetime import datetime

class WorkflowStep(ABC):
    """
    Base class for all workflow steps

    All workflow steps must inherit from this class and implement the execute() method.
    """

    def __init__(self, step_name: str, step_category: str, description: str = ""):
        """
        Initialize workflow step

        Parameters:
        -----------
        step_name : str
            Unique name for this step
        step_category : str
            Category this step belongs to (e.g., 'cleaning')
        description : str, optional
            Human-readable description of what this step does
        """
        self.step_name = step_name
        self.step_category = step_category
        self.description = description
        self.logger = logging.getLogger(f"WorkflowStep.{self.step_name}")

        # Execution metadata
        self.start_time = None
        self.end_time = None
        self.execution_time_seconds = None

    @abstractmethod
    def execute(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute the workflow step

        Parameters:
        -----------
        inputs : Dict[str, Any]
            Input data for this step

        Returns:
        --------
        Dict[str, Any]
            Output data from this step, must include 'success' key
        """
        pass

    def validate_inputs(self, inputs: Dict[str, Any], required_keys: List[str]) -> None:
        """
        Validate that required input keys are present

        Raises:
        -------
        ValueError
            If any required keys are missing
        """
        missing_keys = [key for key in required_keys if key not in inputs]
        if missing_keys:
            raise ValueError(f"Missing required inputs: {missing_keys}")

    def validate_file_exists(self, file_path: str) -> Path:
        """
        Validate that a file exists and return Path object

        Raises:
        -------
        FileNotFoundError
            If file does not exist
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Required file not found: {file_path}")
        return path

    def _log_step_start(self):
        """Log step start and record start time"""
        self.start_time = datetime.now()
        self.logger.info(f"Starting step: {self.step_name}")

    def _log_step_complete(self, outputs: List[str] = None):
        """Log step completion, execution time and created files"""
        self.end_time = datetime.now()
        if self.start_time:
            self.execution_time_seconds = (self.end_time - self.start_time).total_seconds()
            self.logger.info(f"Completed step: {self.step_name} ({self.execution_time_seconds:.1f}s)")
        else:
            self.logger.info(f"Completed step: {self.step_name}")

        for output in outputs or []:
            self.logger.info(f"   Created: {output}")

    def _log_step_failed(self, error_msg: str):
        """Log step failure"""
        self.end_time = datetime.now()
        if self.start_time:
            self.execution_time_seconds = (self.end_time - self.start_time).total_seconds()
        self.logger.error(f"Failed step: {self.step_name}")
        self.logger.error(f"   Error: {error_msg}")

    def get_execution_metadata(self) -> Dict[str, Any]:
        """Metadata about step execution"""
        return {
            'step_name': self.step_name,
            'step_category': self.step_category,
            'description': self.description,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'execution_time_seconds': self.execution_time_seconds
        }

    def __str__(self) -> str:
        return f"{self.step_category}.{self.step_name}"

    def __repr__(self) -> str:
        return f"WorkflowStep(name='{self.step_name}', category='{self.step_category}')"
