"""
Unit tests for HRU / SubBasin table loading and validation
"""

import pytest
import pandas as pd

from processors.hru_tables import (
    HRUTableError, read_hru_table, read_subbasin_table, validate_hru_table,
    validate_subbasin_table, validate_tables, write_hru_table, summarize_subbasins
)


class TestTableLoading:
    """Delimited text loading"""

    def test_read_tables(self, table_files):
        hru_file, subbasin_file = table_files

        hrus = read_hru_table(hru_file)
        subbasins = read_subbasin_table(subbasin_file)

        assert len(hrus) == 8
        assert hrus['ID'].dtype == 'int64'
        assert hrus['Area'].dtype == 'float64'
        assert subbasins['SBID'].tolist() == [1, 2]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_hru_table(tmp_path / 'missing.csv')

    def test_missing_required_value_rejected(self, tmp_path):
        csv_file = tmp_path / 'hrus.csv'
        csv_file.write_text("ID,SBID,Area,LandUse\n1,1,2.5,FOREST\n2,1,1.0,\n")

        with pytest.raises(HRUTableError, match="LandUse"):
            read_hru_table(csv_file)

    def test_non_numeric_area_rejected(self, tmp_path):
        csv_file = tmp_path / 'hrus.csv'
        csv_file.write_text("ID,SBID,Area,LandUse\n1,1,big,FOREST\n")

        with pytest.raises(HRUTableError, match="non-numeric"):
            read_hru_table(csv_file)

    def test_whitespace_in_header_and_values(self, tmp_path):
        csv_file = tmp_path / 'hrus.csv'
        csv_file.write_text("ID, SBID, Area, LandUse\n1, 1, 2.5, FOREST \n")

        hrus = read_hru_table(csv_file)
        assert hrus['LandUse'].tolist() == ['FOREST']

    def test_write_skips_geometry_and_orders_columns(self, tmp_path, hrus):
        hrus = hrus[['Elevation', 'Area', 'ID', 'LandUse', 'SBID']]
        out = write_hru_table(hrus, tmp_path / 'out' / 'hrus.csv')

        written = pd.read_csv(out)
        assert written.columns.tolist() == ['ID', 'SBID', 'Area', 'LandUse', 'Elevation']


class TestValidation:
    """Schema checks"""

    def test_missing_column(self, hrus):
        with pytest.raises(HRUTableError, match="missing required columns"):
            validate_hru_table(hrus.drop(columns=['LandUse']))

    def test_zero_area(self, hrus):
        hrus.loc[0, 'Area'] = 0.0
        with pytest.raises(HRUTableError, match="positive"):
            validate_hru_table(hrus)

    def test_non_positive_id(self, hrus):
        hrus.loc[0, 'ID'] = 0
        with pytest.raises(HRUTableError, match="positive integers"):
            validate_hru_table(hrus)

    def test_fractional_id(self, hrus):
        hrus['ID'] = hrus['ID'].astype(float)
        hrus.loc[0, 'ID'] = 1.5
        with pytest.raises(HRUTableError, match="integers"):
            validate_hru_table(hrus)

    def test_duplicate_subbasin(self, subbasins):
        subbasins.loc[1, 'SBID'] = 1
        with pytest.raises(HRUTableError, match="unique"):
            validate_subbasin_table(subbasins)

    def test_optional_numeric_may_be_missing(self, hrus):
        hrus.loc[0, 'Elevation'] = None
        validated = validate_hru_table(hrus)
        assert pd.isna(validated.loc[0, 'Elevation'])

    def test_orphan_hru(self, hrus, subbasins):
        with pytest.raises(HRUTableError, match="unknown subbasins"):
            validate_tables(hrus, subbasins[subbasins['SBID'] == 1])


class TestSubbasinSummary:
    """Derived subbasin summary"""

    def test_summary(self, hrus, subbasins):
        summary = summarize_subbasins(hrus, subbasins).set_index('SBID')

        assert summary.loc[1, 'NumHRUs'] == 5
        assert summary.loc[1, 'Area'] == pytest.approx(100.0)
        assert summary.loc[1, 'TotalUpstreamArea'] == pytest.approx(100.0)
        assert summary.loc[2, 'TotalUpstreamArea'] == pytest.approx(150.0)

    def test_summary_without_routing(self, hrus, subbasins):
        summary = summarize_subbasins(hrus, subbasins[['SBID']])
        assert summary['TotalUpstreamArea'].tolist() == summary['Area'].tolist()

    def test_routing_cycle(self, hrus, subbasins):
        subbasins.loc[1, 'Downstream_ID'] = 1
        with pytest.raises(HRUTableError, match="cycle"):
            summarize_subbasins(hrus, subbasins)
