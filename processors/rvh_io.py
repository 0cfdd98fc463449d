#!/usr/bin/env python3
"""
RVH reader / writer
Reads and writes the :SubBasins and :HRUs blocks of a RAVEN watershed structure file
"""

import pandas as pd
from pathlib import Path
from typing import Dict, List, Tuple, Union
from datetime import datetime
import logging

from processors.hru_tables import validate_tables, is_geo_table

logger = logging.getLogger(__name__)


class RVHFormatError(ValueError):
    """Raised when an RVH file cannot be parsed"""
    pass


# RAVEN attribute name -> table column
HRU_ATTRIBUTE_COLUMNS = {
    'AREA': 'Area',
    'ELEVATION': 'Elevation',
    'LATITUDE': 'Latitude',
    'LONGITUDE': 'Longitude',
    'BASIN_ID': 'SBID',
    'LAND_USE_CLASS': 'LandUse',
    'VEG_CLASS': 'Vegetation',
    'SOIL_PROFILE': 'SoilProfile',
    'AQUIFER_PROFILE': 'Aquifer',
    'TERRAIN_CLASS': 'Terrain',
    'SLOPE': 'Slope',
    'ASPECT': 'Aspect',
}

HRU_ATTRIBUTE_UNITS = {
    'AREA': 'km2', 'ELEVATION': 'm', 'LATITUDE': 'deg', 'LONGITUDE': 'deg', 'BASIN_ID': 'none',
    'LAND_USE_CLASS': 'none', 'VEG_CLASS': 'none', 'SOIL_PROFILE': 'none', 'AQUIFER_PROFILE': 'none',
    'TERRAIN_CLASS': 'none', 'SLOPE': 'deg', 'ASPECT': 'deg',
}

SUBBASIN_ATTRIBUTE_COLUMNS = {
    'NAME': 'Name',
    'DOWNSTREAM_ID': 'Downstream_ID',
    'PROFILE': 'Profile',
    'REACH_LENGTH': 'ReachLength',
    'GAUGED': 'Gauged',
}

SUBBASIN_ATTRIBUTE_UNITS = {
    'NAME': 'none', 'DOWNSTREAM_ID': 'none', 'PROFILE': 'none', 'REACH_LENGTH': 'km', 'GAUGED': 'none',
}

# Defaults written for columns absent from the HRU table
HRU_ATTRIBUTE_DEFAULTS = {
    'ELEVATION': 0.0,
    'LATITUDE': 0.0,
    'LONGITUDE': 0.0,
    'SLOPE': 0.0,
    'ASPECT': 0.0,
    'VEG_CLASS': '[NONE]',
    'SOIL_PROFILE': '[NONE]',
    'AQUIFER_PROFILE': '[NONE]',
    'TERRAIN_CLASS': '[NONE]',
}

PathLike = Union[str, Path]


def _tokenize(line: str) -> List[str]:
    line = line.split('#', 1)[0]
    return line.replace(',', ' ').split()


def _read_block(lines: List[str], start_tag: str, end_tag: str, path: Path) -> Tuple[List[str], List[List[str]]]:
    """Return the :Attributes names and the data rows of one block"""
    in_block = False
    attributes = None
    rows = []

    for line_number, raw in enumerate(lines, start=1):
        tokens = _tokenize(raw)
        if not tokens:
            continue

        keyword = tokens[0].upper()
        if not in_block:
            if keyword == start_tag.upper():
                in_block = True
            continue

        if keyword == end_tag.upper():
            if attributes is None:
                raise RVHFormatError(f"{path}: {start_tag} block has no :Attributes line")
            return attributes, rows

        if keyword == ':ATTRIBUTES':
            attributes = [token.upper() for token in tokens[1:]]
        elif keyword == ':UNITS':
            continue
        elif keyword.startswith(':'):
            raise RVHFormatError(f"{path}:{line_number}: unexpected command {tokens[0]} in {start_tag} block")
        else:
            if attributes is None:
                raise RVHFormatError(f"{path}:{line_number}: data row before :Attributes in {start_tag} block")
            if len(tokens) != len(attributes) + 1:
                raise RVHFormatError(
                    f"{path}:{line_number}: expected {len(attributes) + 1} values in {start_tag} row, got {len(tokens)}"
                )
            rows.append(tokens)

    if in_block:
        raise RVHFormatError(f"{path}: {start_tag} block is not closed with {end_tag}")
    raise RVHFormatError(f"{path}: no {start_tag} block found")


def read_rvh(rvh_file: PathLike) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Read the HRU and SubBasin tables from a RAVEN .rvh file

    Args:
        rvh_file: Path to the .rvh file

    Returns:
        Tuple of (HRU table, SubBasin table), both validated

    Raises:
        RVHFormatError: If a block is missing or malformed
        HRUTableError: If the parsed tables violate the schema
    """
    path = Path(rvh_file)
    if not path.exists():
        raise FileNotFoundError(f"RVH file not found: {path}")

    logger.info(f"Reading RVH file: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        lines = f.readlines()

    sb_attributes, sb_rows = _read_block(lines, ':SubBasins', ':EndSubBasins', path)
    sb_columns = ['SBID'] + [SUBBASIN_ATTRIBUTE_COLUMNS.get(attr, attr) for attr in sb_attributes]
    subbasins = pd.DataFrame(sb_rows, columns=sb_columns)

    hru_attributes, hru_rows = _read_block(lines, ':HRUs', ':EndHRUs', path)
    hru_columns = ['ID'] + [HRU_ATTRIBUTE_COLUMNS.get(attr, attr) for attr in hru_attributes]
    hrus = pd.DataFrame(hru_rows, columns=hru_columns)

    if 'ReachLength' in subbasins.columns:
        reach = subbasins['ReachLength'].replace({'ZERO-': '0'})
        subbasins['ReachLength'] = reach.mask(reach == '_AUTO')

    # RAVEN writes missing numeric attributes as NONE / [NONE]
    for col in ('Elevation', 'Latitude', 'Longitude', 'Slope', 'Aspect', 'ReachLength'):
        for df in (hrus, subbasins):
            if col in df.columns:
                df[col] = df[col].mask(df[col].isin(['NONE', '[NONE]']))

    hrus, subbasins = validate_tables(hrus, subbasins)
    logger.info(f"Read {len(hrus)} HRUs in {len(subbasins)} subbasins from {path.name}")
    return hrus, subbasins


def _format_value(value) -> str:
    if pd.isna(value):
        return '[NONE]'
    if isinstance(value, float):
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return str(value)


def generate_subbasins_section(subbasins: pd.DataFrame) -> str:
    """Generate :SubBasins section from a SubBasin table"""
    attributes = list(SUBBASIN_ATTRIBUTE_COLUMNS)

    lines = [":SubBasins"]
    lines.append("  :Attributes   " + "  ".join(attributes))
    lines.append("  :Units        " + "  ".join(SUBBASIN_ATTRIBUTE_UNITS[attr] for attr in attributes))

    for _, subbasin in subbasins.iterrows():
        subbasin_id = int(subbasin['SBID'])
        name = subbasin.get('Name', f"SB_{subbasin_id}")
        downstream_id = int(subbasin.get('Downstream_ID', -1))
        profile = subbasin.get('Profile', 'NONE')
        reach_length = subbasin.get('ReachLength', None)
        if reach_length is None or pd.isna(reach_length):
            reach_length = '_AUTO'
        gauged = int(subbasin.get('Gauged', 0))

        values = [name, downstream_id, profile, reach_length, gauged]
        lines.append(f"  {subbasin_id}  " + "  ".join(_format_value(value) for value in values))

    lines.append(":EndSubBasins")
    return "\n".join(lines)


def _centroid_coordinates(hrus: pd.DataFrame) -> Dict[str, pd.Series]:
    """Latitude / longitude of HRU centroids for tables carrying polygons"""
    if not is_geo_table(hrus) or hrus.crs is None:
        return {}

    geometry = hrus.geometry
    if not hrus.crs.is_geographic:
        geometry = geometry.centroid.to_crs(epsg=4326)
    else:
        geometry = geometry.centroid
    return {'Latitude': geometry.y, 'Longitude': geometry.x}


def generate_hrus_section(hrus: pd.DataFrame) -> str:
    """
    Generate :HRUs section from an HRU table

    Every RAVEN HRU attribute is written. Columns missing from the table are filled
    from HRU_ATTRIBUTE_DEFAULTS, except LATITUDE / LONGITUDE of a GeoDataFrame,
    which come from the HRU centroid in geographic coordinates.
    """
    attributes = list(HRU_ATTRIBUTE_COLUMNS)
    columns = [HRU_ATTRIBUTE_COLUMNS[attr] for attr in attributes]
    fill = _centroid_coordinates(hrus)

    lines = [":HRUs"]
    lines.append("  :Attributes   " + "  ".join(attributes))
    lines.append("  :Units        " + "  ".join(HRU_ATTRIBUTE_UNITS[attr] for attr in attributes))

    for idx, hru in hrus.iterrows():
        values = []
        for attr, col in zip(attributes, columns):
            if col in hrus.columns:
                value = hru[col]
            elif col in fill:
                value = float(fill[col][idx])
            else:
                value = HRU_ATTRIBUTE_DEFAULTS[attr]
            if col == 'SBID':
                value = int(value)
            values.append(_format_value(value))
        lines.append(f"  {int(hru['ID'])}  " + "  ".join(values))

    lines.append(":EndHRUs")
    return "\n".join(lines)


def write_rvh(hrus: pd.DataFrame, subbasins: pd.DataFrame, rvh_file: PathLike,
              model_name: str = 'model', comments: Dict[str, str] = None) -> Path:
    """
    Write an RVH file holding the SubBasins and HRUs blocks

    Args:
        hrus: HRU table
        subbasins: SubBasin table
        rvh_file: Output path
        model_name: Written to the header
        comments: Extra header comment lines (key: value)

    Returns:
        Path to the written file
    """
    rvh_file = Path(rvh_file)
    rvh_file.parent.mkdir(parents=True, exist_ok=True)

    with open(rvh_file, 'w', encoding='utf-8') as f:
        f.write("#----------------------------------------------\n")
        f.write("# RAVEN Watershed Structure File\n")
        f.write(f"# Model: {model_name}\n")
        for key, value in (comments or {}).items():
            f.write(f"# {key}: {value}\n")
        f.write(f"# Generated: {datetime.now().isoformat()}\n")
        f.write("#----------------------------------------------\n\n")

        f.write(generate_subbasins_section(subbasins))
        f.write("\n\n")
        f.write(generate_hrus_section(hrus))
        f.write("\n")

    logger.info(f"RVH file created: {rvh_file}")
    return rvh_file
