"""
Unit tests for comparing cleaning variants
"""

import pytest

from infrastructure.configuration_manager import HRUCleaningConfig
from processors.scenario_comparison import run_variants, compare_cleaning_runs, landuse_area_fractions


@pytest.fixture
def variants():
    return {
        'merge_5pct': HRUCleaningConfig(area_tol=0.05),
        'merge_5pct_protected': HRUCleaningConfig(area_tol=0.05, protected_ids=[5], locked_ids=[8]),
        'merge_20pct': HRUCleaningConfig(area_tol=0.2),
        'drop_5pct': HRUCleaningConfig(area_tol=0.05, merge=False),
    }


class TestScenarioComparison:

    def test_run_variants_keeps_order(self, hrus, subbasins, variants):
        results = run_variants(hrus, subbasins, variants)
        assert list(results) == list(variants)

    def test_comparison_table(self, hrus, subbasins, variants):
        results = run_variants(hrus, subbasins, variants)
        comparison = compare_cleaning_runs(hrus, results).set_index('Variant')

        assert comparison.loc['original', 'NumHRUs'] == 8
        assert comparison.loc['merge_5pct', 'NumHRUs'] == 5
        assert comparison.loc['merge_5pct_protected', 'NumHRUs'] == 7
        assert comparison.loc['merge_20pct', 'NumHRUs'] == 4

        # Merging keeps the total area, dropping loses it
        for name in ('merge_5pct', 'merge_5pct_protected', 'merge_20pct'):
            assert comparison.loc[name, 'TotalArea'] == pytest.approx(150.0)
            assert comparison.loc[name, 'AreaChange'] == pytest.approx(0.0)
        assert comparison.loc['drop_5pct', 'AreaChange'] == pytest.approx(-6.0)

        assert comparison.loc['original', 'MinHRUFraction'] == pytest.approx(0.02)
        assert comparison.loc['merge_20pct', 'MinHRUFraction'] == pytest.approx(0.2)

    def test_accepts_plain_tables(self, hrus, subbasins, variants):
        results = run_variants(hrus, subbasins, variants)
        tables = {name: result.hrus for name, result in results.items()}

        comparison = compare_cleaning_runs(hrus, tables)
        assert len(comparison) == len(variants) + 1

    def test_reserved_variant_name(self, hrus):
        with pytest.raises(ValueError, match="reserved"):
            compare_cleaning_runs(hrus, {'original': hrus})

    def test_landuse_fractions(self, hrus, subbasins, variants):
        results = run_variants(hrus, subbasins, variants)
        fractions = landuse_area_fractions(hrus, results)

        assert fractions.loc['FOREST', 'original'] == pytest.approx(108.0 / 150.0)
        assert fractions.loc['WETLAND', 'merge_5pct'] == 0.0
        assert fractions.loc['WETLAND', 'merge_5pct_protected'] == pytest.approx(1.0 / 150.0)
        for column in fractions.columns:
            assert fractions[column].sum() == pytest.approx(1.0)

    def test_landuse_missing_column(self, hrus):
        with pytest.raises(KeyError):
            landuse_area_fractions(hrus, {}, column='Terrain')
