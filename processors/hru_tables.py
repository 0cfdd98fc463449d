#!/usr/bin/env python3
"""
HRU and SubBasin table schema
Loads, validates and writes the tabular HRU / SubBasin data consumed by the consolidator
"""

import pandas as pd
import geopandas as gpd
import numpy as np
from pathlib import Path
from typing import Dict, List, Union
import logging

logger = logging.getLogger(__name__)


class HRUTableError(ValueError):
    """Raised when an HRU or SubBasin table does not satisfy the schema"""
    pass


# Required HRU columns and the dtype they are coerced to
HRU_REQUIRED_COLUMNS = {
    'ID': 'int64',
    'SBID': 'int64',
    'Area': 'float64',
    'LandUse': 'object',
}

HRU_OPTIONAL_COLUMNS = {
    'Vegetation': 'object',
    'SoilProfile': 'object',
    'Aquifer': 'object',
    'Terrain': 'object',
    'Elevation': 'float64',
    'Slope': 'float64',
    'Aspect': 'float64',
    'Latitude': 'float64',
    'Longitude': 'float64',
}

SUBBASIN_REQUIRED_COLUMNS = {
    'SBID': 'int64',
}

SUBBASIN_OPTIONAL_COLUMNS = {
    'Name': 'object',
    'Downstream_ID': 'int64',
    'Profile': 'object',
    'ReachLength': 'float64',
    'Gauged': 'int64',
}

PathLike = Union[str, Path]


def _coerce_columns(df: pd.DataFrame, schema: Dict[str, str], table_name: str,
                    required: bool) -> pd.DataFrame:
    """Coerce schema columns to their dtype, rejecting missing values in required columns"""
    for col, dtype in schema.items():
        if col not in df.columns:
            continue

        if df[col].isna().any():
            bad_rows = df.index[df[col].isna()].tolist()
            if required:
                raise HRUTableError(
                    f"{table_name} table has missing values in required column '{col}' (rows {bad_rows})"
                )
            if dtype == 'int64':
                raise HRUTableError(
                    f"{table_name} table has missing values in integer column '{col}' (rows {bad_rows})"
                )

        if dtype == 'object':
            df[col] = df[col].where(df[col].isna(), df[col].astype(str).str.strip())
            continue

        converted = pd.to_numeric(df[col], errors='coerce')
        not_numeric = converted.isna() & df[col].notna()
        if not_numeric.any():
            bad_values = df.loc[not_numeric, col].tolist()
            raise HRUTableError(
                f"{table_name} table column '{col}' contains non-numeric values: {bad_values}"
            )

        if dtype == 'int64':
            if not np.all(np.mod(converted.values, 1) == 0):
                raise HRUTableError(f"{table_name} table column '{col}' must contain integers")
            df[col] = converted.astype('int64')
        else:
            df[col] = converted.astype('float64')

    return df


def validate_hru_table(hrus: pd.DataFrame) -> pd.DataFrame:
    """
    Validate an HRU table and return a coerced copy

    Args:
        hrus: HRU table (DataFrame or GeoDataFrame)

    Returns:
        Copy of the table with schema dtypes applied

    Raises:
        HRUTableError: If required columns are missing, values are missing or
            non-numeric, IDs are not unique positive integers or areas are not positive
    """
    missing_cols = [col for col in HRU_REQUIRED_COLUMNS if col not in hrus.columns]
    if missing_cols:
        raise HRUTableError(f"HRU table is missing required columns: {missing_cols}")

    df = hrus.copy(deep=True)
    df = _coerce_columns(df, HRU_REQUIRED_COLUMNS, 'HRU', required=True)
    df = _coerce_columns(df, HRU_OPTIONAL_COLUMNS, 'HRU', required=False)

    if (df['ID'] <= 0).any():
        bad_ids = df.loc[df['ID'] <= 0, 'ID'].tolist()
        raise HRUTableError(f"HRU IDs must be positive integers: {bad_ids}")

    duplicated = df['ID'][df['ID'].duplicated()].unique().tolist()
    if duplicated:
        raise HRUTableError(f"HRU IDs must be unique, duplicates found: {duplicated}")

    if (df['Area'] <= 0).any():
        bad_ids = df.loc[df['Area'] <= 0, 'ID'].tolist()
        raise HRUTableError(f"HRU areas must be positive, invalid HRUs: {bad_ids}")

    return df


def validate_subbasin_table(subbasins: pd.DataFrame) -> pd.DataFrame:
    """Validate a SubBasin table and return a coerced copy"""
    missing_cols = [col for col in SUBBASIN_REQUIRED_COLUMNS if col not in subbasins.columns]
    if missing_cols:
        raise HRUTableError(f"SubBasin table is missing required columns: {missing_cols}")

    df = subbasins.copy(deep=True)
    df = _coerce_columns(df, SUBBASIN_REQUIRED_COLUMNS, 'SubBasin', required=True)
    df = _coerce_columns(df, SUBBASIN_OPTIONAL_COLUMNS, 'SubBasin', required=False)

    duplicated = df['SBID'][df['SBID'].duplicated()].unique().tolist()
    if duplicated:
        raise HRUTableError(f"SubBasin IDs must be unique, duplicates found: {duplicated}")

    return df


def validate_tables(hrus: pd.DataFrame, subbasins: pd.DataFrame):
    """
    Validate both tables and the HRU -> SubBasin reference

    Returns:
        Tuple of (validated HRU table, validated SubBasin table)
    """
    hru_df = validate_hru_table(hrus)
    sb_df = validate_subbasin_table(subbasins)

    unknown = sorted(set(hru_df['SBID']) - set(sb_df['SBID']))
    if unknown:
        orphan_ids = hru_df.loc[hru_df['SBID'].isin(unknown), 'ID'].tolist()
        raise HRUTableError(
            f"HRUs {orphan_ids} reference unknown subbasins {unknown}"
        )

    return hru_df, sb_df


def read_hru_table(path: PathLike, sep: str = ',') -> pd.DataFrame:
    """Load an HRU table from delimited text and validate it"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"HRU table not found: {path}")

    logger.info(f"Loading HRU table from {path}")
    df = pd.read_csv(path, sep=sep, skipinitialspace=True)
    df.columns = [str(col).strip() for col in df.columns]
    return validate_hru_table(df)


def read_subbasin_table(path: PathLike, sep: str = ',') -> pd.DataFrame:
    """Load a SubBasin table from delimited text and validate it"""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"SubBasin table not found: {path}")

    logger.info(f"Loading SubBasin table from {path}")
    df = pd.read_csv(path, sep=sep, skipinitialspace=True)
    df.columns = [str(col).strip() for col in df.columns]
    return validate_subbasin_table(df)


def _ordered_columns(df: pd.DataFrame, schema_order: List[str]) -> List[str]:
    known = [col for col in schema_order if col in df.columns]
    extra = [col for col in df.columns if col not in known and col != 'geometry']
    return known + extra


def write_hru_table(hrus: pd.DataFrame, path: PathLike) -> Path:
    """Write an HRU table to CSV (geometry is not written)"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    columns = _ordered_columns(hrus, list(HRU_REQUIRED_COLUMNS) + list(HRU_OPTIONAL_COLUMNS))
    pd.DataFrame(hrus[columns]).to_csv(path, index=False)
    logger.info(f"HRU table written: {path} ({len(hrus)} HRUs)")
    return path


def write_subbasin_table(subbasins: pd.DataFrame, path: PathLike) -> Path:
    """Write a SubBasin table to CSV"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    columns = _ordered_columns(subbasins, list(SUBBASIN_REQUIRED_COLUMNS) + list(SUBBASIN_OPTIONAL_COLUMNS))
    pd.DataFrame(subbasins[columns]).to_csv(path, index=False)
    logger.info(f"SubBasin table written: {path} ({len(subbasins)} subbasins)")
    return path


def summarize_subbasins(hrus: pd.DataFrame, subbasins: pd.DataFrame) -> pd.DataFrame:
    """
    Derive a SubBasin summary from the HRUs it owns

    The summary holds, for every subbasin, the number of HRUs, the summed HRU
    area and the total upstream area (own area plus every subbasin draining into it
    through Downstream_ID). The SubBasin table itself is left untouched.

    Args:
        hrus: Validated HRU table
        subbasins: Validated SubBasin table

    Returns:
        DataFrame with SBID, NumHRUs, Area, TotalUpstreamArea
    """
    grouped = hrus.groupby('SBID')['Area'].agg(['count', 'sum'])

    summary = pd.DataFrame({'SBID': subbasins['SBID'].values})
    summary['NumHRUs'] = summary['SBID'].map(grouped['count']).fillna(0).astype('int64')
    summary['Area'] = summary['SBID'].map(grouped['sum']).fillna(0.0).astype('float64')

    if 'Downstream_ID' not in subbasins.columns:
        summary['TotalUpstreamArea'] = summary['Area']
        return summary

    own_area = dict(zip(summary['SBID'], summary['Area']))
    downstream = dict(zip(subbasins['SBID'], subbasins['Downstream_ID']))

    # Walk every subbasin down to the outlet, adding its area to each downstream subbasin
    upstream_area = dict(own_area)
    for sbid, area in own_area.items():
        visited = {sbid}
        down_id = downstream.get(sbid, -1)
        while down_id in own_area and down_id not in visited:
            upstream_area[down_id] += area
            visited.add(down_id)
            down_id = downstream.get(down_id, -1)
        if down_id in visited:
            raise HRUTableError(f"Subbasin routing contains a cycle through subbasin {down_id}")

    summary['TotalUpstreamArea'] = summary['SBID'].map(upstream_area).astype('float64')
    return summary


def subbasin_areas(hrus: pd.DataFrame) -> Dict[int, float]:
    """Total HRU area per subbasin"""
    return {int(sbid): float(area) for sbid, area in hrus.groupby('SBID')['Area'].sum().items()}


def is_geo_table(hrus: pd.DataFrame) -> bool:
    """True when the HRU table carries polygons"""
    return isinstance(hrus, gpd.GeoDataFrame) and 'geometry' in hrus.columns
