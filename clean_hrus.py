#!/usr/bin/env python3
"""
HRU Cleaning - command line entry point
Merges or drops HRUs smaller than a fraction of their subbasin area

Examples:
    python clean_hrus.py --rvh model/model.rvh --area-tol 0.005 --output-dir cleaned
    python clean_hrus.py --config cleaning.yaml
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from infrastructure.path_manager import AbsolutePathManager, PathResolutionError, FileAccessError
from infrastructure.configuration_manager import (
    ConfigurationManager, ConfigurationError, CleaningWorkflowConfiguration, HRUCleaningConfig
)
from workflows.steps.hru_cleaning_step import HRUCleaningStep

logger = logging.getLogger(__name__)


def _parse_id_list(value: str) -> List[int]:
    """Parse '1,2,5' into [1, 2, 5]"""
    try:
        return [int(token) for token in value.replace(' ', '').split(',') if token]
    except ValueError:
        raise ConfigurationError(f"Expected comma separated HRU IDs, got '{value}'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Clean RAVEN HRU tables by merging or dropping small HRUs')

    parser.add_argument('--config', help='YAML/JSON configuration file with one or more variants')
    parser.add_argument('--rvh', help='RAVEN .rvh file holding :SubBasins and :HRUs')
    parser.add_argument('--hru-table', help='HRU table (CSV)')
    parser.add_argument('--subbasin-table', help='SubBasin table (CSV)')
    parser.add_argument('--output-dir', default='cleaned_hrus', help='Output directory')
    parser.add_argument('--model-name', default='model', help='Model name used for the RVH output')

    parser.add_argument('--area-tol', type=float, default=0.0,
                        help='Minimum HRU area as fraction of subbasin area (e.g. 0.005)')
    parser.add_argument('--no-merge', action='store_true',
                        help='Drop small HRUs instead of merging them into a neighbour')
    parser.add_argument('--protected', default='',
                        help='Comma separated HRU IDs that can not be removed')
    parser.add_argument('--locked', default='',
                        help='Comma separated HRU IDs exempt from cleaning')
    parser.add_argument('--locked-receives-area', action='store_true',
                        help='Allow locked HRUs to absorb merged area')
    parser.add_argument('--merge-similar', action='store_true',
                        help='First merge HRUs with identical classes and similar terrain')
    parser.add_argument('--no-rvh-output', action='store_true', help='Do not write cleaned .rvh files')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    return parser


def _config_from_args(args) -> CleaningWorkflowConfiguration:
    variant = HRUCleaningConfig(
        area_tol=args.area_tol,
        merge=not args.no_merge,
        protected_ids=_parse_id_list(args.protected),
        locked_ids=_parse_id_list(args.locked),
        locked_receives_area=args.locked_receives_area,
        merge_similar=args.merge_similar,
    )
    name = f"tol_{args.area_tol:g}" + ("" if variant.merge else "_drop")

    config = CleaningWorkflowConfiguration(
        output_dir=str(Path(args.output_dir).resolve()),
        variants={name: variant},
        rvh_file=str(Path(args.rvh).resolve()) if args.rvh else None,
        hru_table=str(Path(args.hru_table).resolve()) if args.hru_table else None,
        subbasin_table=str(Path(args.subbasin_table).resolve()) if args.subbasin_table else None,
        model_name=args.model_name,
        write_rvh=not args.no_rvh_output,
    )

    errors = config.validate()
    if errors:
        raise ConfigurationError("Invalid arguments:\n  - " + "\n  - ".join(errors))
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Run HRU cleaning from the command line, returns the exit code"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    try:
        if args.config:
            config_path = Path(args.config).resolve()
            manager = ConfigurationManager(AbsolutePathManager(config_path.parent))
            config = manager.load_configuration(config_path)
        else:
            config = _config_from_args(args)
    except (ConfigurationError, PathResolutionError, FileAccessError) as e:
        logger.error(str(e))
        return 1

    result = HRUCleaningStep().execute({'config': config})
    if not result['success']:
        logger.error(result['error'])
        return 1

    for name, stats in result['statistics'].items():
        logger.info(f"{name}: {stats['initial_hrus']} -> {stats['final_hrus']} HRUs, "
                    f"total area {stats['total_area_km2']:.6f} km²")
    return 0


if __name__ == "__main__":
    sys.exit(main())
