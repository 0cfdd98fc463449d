"""
Unit tests for cleaning configuration loading and validation
"""

import json
import pytest
import yaml

from infrastructure.path_manager import AbsolutePathManager, FileAccessError, PathResolutionError
from infrastructure.configuration_manager import (
    ConfigurationManager, ConfigurationError, HRUCleaningConfig, CleaningWorkflowConfiguration
)


class TestHRUCleaningConfig:
    """Single-run parameters"""

    def test_defaults(self):
        config = HRUCleaningConfig()

        assert config.area_tol == 0.0
        assert config.merge is True
        assert config.locked_receives_area is False
        assert config.match_columns == ['LandUse']
        assert config.validate() == []

    def test_from_dict_converts_ids(self):
        config = HRUCleaningConfig.from_dict({'area_tol': 0.02, 'protected_ids': ['4', 7], 'locked_ids': None})

        assert config.protected_ids == [4, 7]
        assert config.locked_ids == []

    def test_unknown_parameter(self):
        with pytest.raises(ConfigurationError, match="area_tolerance"):
            HRUCleaningConfig.from_dict({'area_tolerance': 0.02})

    def test_validate_reports_every_problem(self):
        errors = HRUCleaningConfig(area_tol=1.5, locked_ids=[-3], elev_tol=-1.0).validate()

        assert len(errors) == 3
        assert any('area_tol' in error for error in errors)
        assert any('locked_ids' in error for error in errors)
        assert any('elev_tol' in error for error in errors)


class TestConfigurationManager:
    """YAML / JSON workflow configuration"""

    @pytest.fixture
    def manager(self, tmp_path):
        return ConfigurationManager(AbsolutePathManager(tmp_path))

    def test_load_yaml_resolves_paths(self, tmp_path, manager):
        config_file = tmp_path / 'cleaning.yaml'
        config_file.write_text(yaml.safe_dump({
            'rvh_file': 'model/model.rvh',
            'output_dir': 'cleaned',
            'variants': {
                'tol_0.5pct': {'area_tol': 0.005},
                'tol_2pct_exempt': {'area_tol': 0.02, 'protected_ids': [3], 'locked_ids': [8]},
            }
        }))

        config = manager.load_configuration(config_file)

        root = tmp_path.resolve()
        assert config.rvh_file == str(root / 'model' / 'model.rvh')
        assert config.output_dir == str(root / 'cleaned')
        assert list(config.variants) == ['tol_0.5pct', 'tol_2pct_exempt']
        assert config.variants['tol_2pct_exempt'].locked_ids == [8]

    def test_invalid_variant_fails(self, tmp_path, manager):
        config_file = tmp_path / 'cleaning.json'
        config_file.write_text(json.dumps({
            'hru_table': 'hrus.csv',
            'subbasin_table': 'subbasins.csv',
            'output_dir': 'cleaned',
            'variants': {'bad': {'area_tol': 1.2}}
        }))

        with pytest.raises(ConfigurationError, match="Variant 'bad'"):
            manager.load_configuration(config_file)

    def test_missing_input_fails(self, tmp_path, manager):
        config_file = tmp_path / 'cleaning.yaml'
        config_file.write_text(yaml.safe_dump({'output_dir': 'out', 'variants': {'a': {'area_tol': 0.01}}}))

        with pytest.raises(ConfigurationError, match="Input missing"):
            manager.load_configuration(config_file)

    def test_missing_variants_fails(self, tmp_path, manager):
        config_file = tmp_path / 'cleaning.yaml'
        config_file.write_text(yaml.safe_dump({'rvh_file': 'model.rvh', 'output_dir': 'out'}))

        with pytest.raises(ConfigurationError, match="variants"):
            manager.load_configuration(config_file)

    def test_missing_file(self, tmp_path, manager):
        with pytest.raises(FileAccessError):
            manager.load_configuration(tmp_path / 'absent.yaml')

    def test_unsupported_format(self, tmp_path, manager):
        config_file = tmp_path / 'cleaning.ini'
        config_file.write_text('[cleaning]')

        with pytest.raises(ConfigurationError, match="Unsupported"):
            manager.load_configuration(config_file)

    def test_save_and_reload(self, tmp_path, manager):
        tmp_path = tmp_path.resolve()
        config = CleaningWorkflowConfiguration(
            output_dir=str(tmp_path / 'cleaned'),
            variants={'drop_1pct': HRUCleaningConfig(area_tol=0.01, merge=False, locked_ids=[2])},
            hru_table=str(tmp_path / 'hrus.csv'),
            subbasin_table=str(tmp_path / 'subbasins.csv'),
        )

        saved = manager.save_configuration(config, 'configs/cleaning.yaml')
        reloaded = manager.load_configuration(saved)

        assert reloaded.variants['drop_1pct'] == config.variants['drop_1pct']
        assert reloaded.hru_table == config.hru_table
        assert 'last_modified' in reloaded.metadata


class TestAbsolutePathManager:
    """Path resolution against the workspace root"""

    def test_relative_path(self, tmp_path):
        assert AbsolutePathManager(tmp_path).resolve_path('a/b.csv') == tmp_path.resolve() / 'a' / 'b.csv'

    def test_missing_workspace(self, tmp_path):
        with pytest.raises(PathResolutionError):
            AbsolutePathManager(tmp_path / 'absent')

    def test_empty_path(self, tmp_path):
        with pytest.raises(PathResolutionError):
            AbsolutePathManager(tmp_path).resolve_path('')
