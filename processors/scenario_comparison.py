#!/usr/bin/env python3
"""
Cleaning Scenario Comparison
Runs the HRU consolidator at several thresholds and tabulates the resulting HRU sets
"""

import pandas as pd
import numpy as np
from typing import Dict, Mapping
import logging

from infrastructure.configuration_manager import HRUCleaningConfig
from processors.hru_consolidator import HRUConsolidator, ConsolidationResult
from processors.hru_tables import validate_hru_table

logger = logging.getLogger(__name__)

ORIGINAL_LABEL = 'original'


def run_variants(hrus: pd.DataFrame, subbasins: pd.DataFrame,
                 variants: Mapping[str, HRUCleaningConfig]) -> Dict[str, ConsolidationResult]:
    """
    Run one consolidation per named configuration on the same input tables

    Args:
        hrus: HRU table
        subbasins: SubBasin table
        variants: Variant name -> cleaning parameters

    Returns:
        Variant name -> ConsolidationResult, in the order given
    """
    results = {}
    for name, config in variants.items():
        logger.info(f"Running cleaning variant '{name}'")
        results[name] = HRUConsolidator(config).consolidate(hrus, subbasins)
    return results


def _as_tables(original: pd.DataFrame, runs: Mapping[str, object]) -> Dict[str, pd.DataFrame]:
    if ORIGINAL_LABEL in runs:
        raise ValueError(f"Variant name '{ORIGINAL_LABEL}' is reserved for the uncleaned table")

    tables = {ORIGINAL_LABEL: validate_hru_table(original)}
    for name, run in runs.items():
        tables[name] = run.hrus if isinstance(run, ConsolidationResult) else run
    return tables


def compare_cleaning_runs(original: pd.DataFrame, runs: Mapping[str, object]) -> pd.DataFrame:
    """
    Tabulate HRU count and area of the original table and every cleaned variant

    Args:
        original: Uncleaned HRU table
        runs: Variant name -> ConsolidationResult or cleaned HRU table

    Returns:
        DataFrame with Variant, NumHRUs, TotalArea, AreaChange and MinHRUFraction
        (smallest HRU area as fraction of its subbasin area)
    """
    tables = _as_tables(original, runs)
    original_area = float(tables[ORIGINAL_LABEL]['Area'].sum())

    rows = []
    for name, table in tables.items():
        total_area = float(table['Area'].sum())
        if len(table) > 0:
            fractions = table['Area'] / table.groupby('SBID')['Area'].transform('sum')
            min_fraction = float(fractions.min())
        else:
            min_fraction = np.nan
        rows.append({
            'Variant': name,
            'NumHRUs': len(table),
            'TotalArea': total_area,
            'AreaChange': total_area - original_area,
            'MinHRUFraction': min_fraction,
        })

    comparison = pd.DataFrame(rows)
    logger.info("HRU counts by variant: " +
                ", ".join(f"{row.Variant}={row.NumHRUs}" for row in comparison.itertuples()))
    return comparison


def landuse_area_fractions(original: pd.DataFrame, runs: Mapping[str, object],
                           column: str = 'LandUse') -> pd.DataFrame:
    """
    Fraction of the domain area covered by each class, per variant

    Args:
        original: Uncleaned HRU table
        runs: Variant name -> ConsolidationResult or cleaned HRU table
        column: Class column to tabulate

    Returns:
        Wide DataFrame indexed by class with one column per variant; classes
        absent from a variant have fraction 0
    """
    tables = _as_tables(original, runs)

    fractions = {}
    for name, table in tables.items():
        if column not in table.columns:
            raise KeyError(f"Column '{column}' not found in HRU table of variant '{name}'")
        total_area = table['Area'].sum()
        fractions[name] = table.groupby(column)['Area'].sum() / total_area

    result = pd.DataFrame(fractions).fillna(0.0).sort_index()
    result.index.name = column
    return result
