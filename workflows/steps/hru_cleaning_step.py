"""
HRU Cleaning Step for RAVEN Workflows

Reads the HRU / SubBasin tables, runs every configured cleaning variant and writes
the cleaned tables, reports and comparison tables to the output directory.
"""

from pathlib import Path
from typing import Dict, Any, List
import json

from workflows.steps.base_step import WorkflowStep
from infrastructure.configuration_manager import CleaningWorkflowConfiguration
from processors.hru_tables import (
    read_hru_table, read_subbasin_table, validate_tables,
    write_hru_table, write_subbasin_table
)
from processors.rvh_io import read_rvh, write_rvh
from processors.scenario_comparison import run_variants, compare_cleaning_runs, landuse_area_fractions


class HRUCleaningStep(WorkflowStep):
    """
    Consolidate small HRUs for one or more thresholds

    Inputs:
        config: CleaningWorkflowConfiguration
        hrus / subbasins (optional): in-memory tables used instead of the files in config
    """

    def __init__(self):
        super().__init__(
            step_name="clean_hrus",
            step_category="hru_cleaning",
            description="Merge or drop HRUs below an area fraction of their subbasin"
        )

    def execute(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        self._log_step_start()

        try:
            self.validate_inputs(inputs, ['config'])
            config: CleaningWorkflowConfiguration = inputs['config']

            if 'hrus' in inputs and 'subbasins' in inputs:
                hrus, subbasins = validate_tables(inputs['hrus'], inputs['subbasins'])
            else:
                hrus, subbasins = self._load_tables(config)

            output_dir = Path(config.output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)

            results = run_variants(hrus, subbasins, config.variants)

            files_created: List[str] = []
            statistics = {}
            for name, result in results.items():
                files_created.extend(self._write_variant(name, result, config, output_dir))
                statistics[name] = {
                    'initial_hrus': result.report.initial_hrus,
                    'final_hrus': result.report.final_hrus,
                    'merged': len(result.report.merges) + len(result.report.similar_merges),
                    'dropped': len(result.report.dropped),
                    'unmerged': len(result.report.unmerged),
                    'total_area_km2': float(result.hrus['Area'].sum()),
                }

            comparison = compare_cleaning_runs(hrus, results)
            comparison_file = output_dir / 'variant_comparison.csv'
            comparison.to_csv(comparison_file, index=False)
            files_created.append(str(comparison_file))

            landuse = landuse_area_fractions(hrus, results)
            landuse_file = output_dir / 'landuse_fractions.csv'
            landuse.to_csv(landuse_file)
            files_created.append(str(landuse_file))

            stats_file = output_dir / 'cleaning_statistics.json'
            with open(stats_file, 'w') as f:
                json.dump(statistics, f, indent=2)
            files_created.append(str(stats_file))

            outputs = {
                'files_created': files_created,
                'statistics': statistics,
                'comparison': comparison,
                'results': results,
                'success': True
            }

            self._log_step_complete(files_created)
            return outputs

        except Exception as e:
            error_msg = f"HRU cleaning failed: {str(e)}"
            self._log_step_failed(error_msg)
            return {'success': False, 'error': error_msg}

    def _load_tables(self, config: CleaningWorkflowConfiguration):
        if config.rvh_file:
            rvh_file = self.validate_file_exists(config.rvh_file)
            return read_rvh(rvh_file)

        hru_file = self.validate_file_exists(config.hru_table)
        subbasin_file = self.validate_file_exists(config.subbasin_table)
        return validate_tables(read_hru_table(hru_file), read_subbasin_table(subbasin_file))

    def _write_variant(self, name: str, result, config: CleaningWorkflowConfiguration,
                       output_dir: Path) -> List[str]:
        variant_dir = output_dir / name
        created = [
            write_hru_table(result.hrus, variant_dir / 'hrus.csv'),
            write_subbasin_table(result.subbasins, variant_dir / 'subbasins.csv'),
        ]

        summary_file = variant_dir / 'subbasin_summary.csv'
        result.summary.to_csv(summary_file, index=False)
        created.append(summary_file)

        report_file = variant_dir / 'cleaning_report.csv'
        result.report.to_frame().to_csv(report_file, index=False)
        created.append(report_file)

        if config.write_rvh:
            variant_config = config.variants[name]
            created.append(write_rvh(
                result.hrus, result.subbasins, variant_dir / f"{config.model_name}.rvh",
                model_name=config.model_name,
                comments={
                    'HRU cleaning variant': name,
                    'Area tolerance': variant_config.area_tol,
                    'Merge': variant_config.merge,
                }
            ))

        self.logger.info(f"Variant '{name}': {result.report.initial_hrus} -> {result.report.final_hrus} HRUs")
        return [str(path) for path in created]
