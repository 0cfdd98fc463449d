"""
ConfigurationManager for parameterized and reproducible HRU cleaning runs.
"""

import json
import yaml
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Any, Union, Optional
from dataclasses import dataclass, asdict, field
import logging

from .path_manager import AbsolutePathManager, FileAccessError

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is missing or invalid"""
    pass


@dataclass
class HRUCleaningConfig:
    """Parameters of a single HRU consolidation run"""
    # Minimum HRU area as fraction of its subbasin area (0.005 = 0.5%)
    area_tol: float = 0.0

    # Merge small HRUs into a neighbour (True) or drop them (False)
    merge: bool = True

    # HRUs that can never be removed (may still receive area)
    protected_ids: List[int] = field(default_factory=list)

    # HRUs that are fully exempt from cleaning
    locked_ids: List[int] = field(default_factory=list)
    locked_receives_area: bool = False

    # Target selection: class columns in importance order, then numeric similarity
    match_columns: List[str] = field(default_factory=lambda: ['LandUse'])
    similarity_columns: List[str] = field(default_factory=lambda: ['Elevation', 'Slope', 'Aspect'])

    # Optional pre-pass merging HRUs with identical classes and close terrain (merge mode only)
    merge_similar: bool = False
    elev_tol: float = 50.0
    slope_tol: float = 4.0
    aspect_tol: float = 20.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HRUCleaningConfig':
        """Create from dictionary"""
        data = dict(data or {})
        unknown = [key for key in data if key not in cls.__dataclass_fields__]
        if unknown:
            raise ConfigurationError(f"Unknown HRU cleaning parameters: {unknown}")
        for key in ('protected_ids', 'locked_ids'):
            if data.get(key) is None:
                data.pop(key, None)
            else:
                data[key] = [int(hru_id) for hru_id in data[key]]
        return cls(**data)

    def validate(self) -> List[str]:
        """Validate cleaning parameters"""
        errors = []

        if not isinstance(self.area_tol, (int, float)) or isinstance(self.area_tol, bool):
            errors.append("area_tol must be numeric")
        elif not (0 <= self.area_tol < 1):
            errors.append(f"area_tol must be in [0, 1), got {self.area_tol}")

        if not isinstance(self.merge, bool):
            errors.append("merge must be boolean")

        if not isinstance(self.locked_receives_area, bool):
            errors.append("locked_receives_area must be boolean")

        for name in ('protected_ids', 'locked_ids'):
            for hru_id in getattr(self, name):
                if not isinstance(hru_id, int) or hru_id <= 0:
                    errors.append(f"Invalid HRU ID in {name}: {hru_id}")

        for name in ('elev_tol', 'slope_tol', 'aspect_tol'):
            if getattr(self, name) < 0:
                errors.append(f"{name} cannot be negative")

        if self.aspect_tol > 180:
            errors.append("aspect_tol cannot exceed 180 degrees")

        return errors


@dataclass
class CleaningWorkflowConfiguration:
    """Inputs, outputs and named cleaning variants"""
    output_dir: str
    variants: Dict[str, HRUCleaningConfig]
    rvh_file: Optional[str] = None
    hru_table: Optional[str] = None
    subbasin_table: Optional[str] = None
    model_name: str = 'model'
    write_rvh: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with variant serialization"""
        data = asdict(self)
        data['variants'] = {name: variant.to_dict() for name, variant in self.variants.items()}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CleaningWorkflowConfiguration':
        """Create from dictionary with variant deserialization"""
        data = dict(data)
        if 'output_dir' not in data:
            raise ConfigurationError("Configuration is missing required key 'output_dir'")
        if not data.get('variants'):
            raise ConfigurationError("Configuration must define at least one entry under 'variants'")

        data['variants'] = {
            str(name): HRUCleaningConfig.from_dict(variant)
            for name, variant in data['variants'].items()
        }

        unknown = [key for key in data if key not in cls.__dataclass_fields__]
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**data)

    def validate(self) -> List[str]:
        """Validate inputs and every variant"""
        errors = []

        if self.rvh_file and (self.hru_table or self.subbasin_table):
            errors.append("Specify either rvh_file or hru_table/subbasin_table, not both")
        elif not self.rvh_file and not (self.hru_table and self.subbasin_table):
            errors.append("Input missing: rvh_file or both hru_table and subbasin_table are required")

        for name, variant in self.variants.items():
            errors.extend([f"Variant '{name}': {error}" for error in variant.validate()])

        return errors


class ConfigurationManager:
    """
    Loads, validates and saves HRU cleaning configurations (YAML or JSON).
    All input and output paths are resolved to absolute paths on load.
    """

    def __init__(self, path_manager: AbsolutePathManager):
        self.path_manager = path_manager
        logger.info(f"Initialized ConfigurationManager for workspace: {self.path_manager.workspace_root}")

    @staticmethod
    def _format_for(config_file: Path) -> str:
        suffix = config_file.suffix.lower()
        if suffix in ('.yaml', '.yml'):
            return 'yaml'
        if suffix == '.json':
            return 'json'
        raise ConfigurationError(f"Unsupported configuration format '{suffix}' (use .yaml, .yml or .json)")

    def load_configuration(self, config_file: Union[str, Path]) -> CleaningWorkflowConfiguration:
        """
        Load a cleaning configuration with absolute path resolution.

        Raises:
            FileAccessError: If the config file cannot be read or parsed
            ConfigurationError: If the configuration is incomplete or invalid
        """
        abs_config_path = self.path_manager.resolve_path(config_file)
        self.path_manager.validate_path(abs_config_path, must_exist=True, must_be_file=True)
        config_format = self._format_for(abs_config_path)

        try:
            with open(abs_config_path, 'r', encoding='utf-8') as f:
                if config_format == 'yaml':
                    config_dict = yaml.safe_load(f)
                else:
                    config_dict = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise FileAccessError(str(abs_config_path), "read configuration", str(e))

        if not isinstance(config_dict, dict):
            raise ConfigurationError(f"Configuration file {abs_config_path} must contain a mapping")

        config = CleaningWorkflowConfiguration.from_dict(config_dict)
        config = self.resolve_config_paths(config)

        errors = config.validate()
        if errors:
            raise ConfigurationError(
                f"Invalid configuration {abs_config_path}:\n  - " + "\n  - ".join(errors)
            )

        logger.info(f"Loaded configuration from: {abs_config_path} ({len(config.variants)} variants)")
        return config

    def save_configuration(self, config: CleaningWorkflowConfiguration,
                           config_file: Union[str, Path]) -> Path:
        """Save configuration to YAML or JSON depending on the file suffix"""
        abs_config_path = self.path_manager.ensure_file_writable(config_file)
        config_format = self._format_for(abs_config_path)

        config.metadata['last_modified'] = datetime.now().isoformat()
        config_dict = config.to_dict()

        try:
            with open(abs_config_path, 'w', encoding='utf-8') as f:
                if config_format == 'yaml':
                    yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)
                else:
                    json.dump(config_dict, f, indent=2, ensure_ascii=False)
        except (OSError, yaml.YAMLError) as e:
            raise FileAccessError(str(abs_config_path), "write configuration", str(e))

        logger.info(f"Saved configuration to: {abs_config_path}")
        return abs_config_path

    def resolve_config_paths(self, config: CleaningWorkflowConfiguration) -> CleaningWorkflowConfiguration:
        """Convert input and output paths to absolute paths"""
        config.output_dir = str(self.path_manager.resolve_path(config.output_dir))
        for key in ('rvh_file', 'hru_table', 'subbasin_table'):
            value = getattr(config, key)
            if value:
                setattr(config, key, str(self.path_manager.resolve_path(value)))
        return config
