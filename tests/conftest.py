"""
Shared fixtures for the HRU cleaning tests
"""

import sys
from pathlib import Path

import pandas as pd
import pytest

# Add parent directory to path
sys.path.append(str(Path(__file__).parent.parent))


def make_hru_table():
    """Two subbasins: SB 1 (100 km², drains to SB 2) and SB 2 (50 km², outlet)"""
    return pd.DataFrame({
        'ID':        [1, 2, 3, 4, 5, 6, 7, 8],
        'SBID':      [1, 1, 1, 1, 1, 2, 2, 2],
        'Area':      [50.0, 30.0, 15.0, 3.0, 2.0, 40.0, 9.0, 1.0],
        'LandUse':   ['FOREST', 'AGRICULTURE', 'FOREST', 'FOREST', 'AGRICULTURE',
                      'FOREST', 'URBAN', 'WETLAND'],
        'Vegetation': ['CONIFEROUS', 'CROP', 'CONIFEROUS', 'CONIFEROUS', 'CROP',
                       'DECIDUOUS', 'GRASS', 'GRASS'],
        'SoilProfile': ['LOAM', 'CLAY', 'LOAM', 'LOAM', 'CLAY', 'SAND', 'LOAM', 'PEAT'],
        'Elevation': [500.0, 300.0, 800.0, 750.0, 310.0, 1000.0, 900.0, 950.0],
        'Slope':     [5.0, 2.0, 15.0, 14.0, 2.0, 20.0, 10.0, 1.0],
        'Aspect':    [180.0, 90.0, 0.0, 10.0, 100.0, 270.0, 45.0, 200.0],
    })


def make_subbasin_table():
    return pd.DataFrame({
        'SBID': [1, 2],
        'Name': ['SB_1', 'SB_2'],
        'Downstream_ID': [2, -1],
        'Profile': ['DEFAULT_P', 'DEFAULT_P'],
        'ReachLength': [2.5, 4.0],
        'Gauged': [0, 1],
    })


@pytest.fixture
def hrus():
    return make_hru_table()


@pytest.fixture
def subbasins():
    return make_subbasin_table()


@pytest.fixture
def table_files(tmp_path, hrus, subbasins):
    """HRU and SubBasin tables written as CSV"""
    hru_file = tmp_path / 'hrus.csv'
    subbasin_file = tmp_path / 'subbasins.csv'
    hrus.to_csv(hru_file, index=False)
    subbasins.to_csv(subbasin_file, index=False)
    return hru_file, subbasin_file
