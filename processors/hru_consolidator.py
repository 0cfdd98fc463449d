#!/usr/bin/env python3
"""
HRU Consolidation
Removes HRUs that are small relative to their subbasin, either by merging them into the
most similar HRU of the same subbasin or by dropping them, while honouring protected
and locked HRUs.
"""

import math
import numpy as np
import pandas as pd
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional, Iterable, Set
import logging

from infrastructure.configuration_manager import HRUCleaningConfig, ConfigurationError
from processors.hru_tables import validate_tables, summarize_subbasins, is_geo_table

logger = logging.getLogger(__name__)

CLASS_COLUMNS = ['LandUse', 'Vegetation', 'SoilProfile', 'Terrain', 'Aquifer']


@dataclass
class MergeRecord:
    source_id: int
    target_id: int
    subbasin_id: int
    area: float


@dataclass
class DroppedRecord:
    hru_id: int
    subbasin_id: int
    area: float


@dataclass
class UnmergedRecord:
    hru_id: int
    subbasin_id: int
    area: float
    reason: str


@dataclass
class ConsolidationReport:
    """What a consolidation run did to every affected HRU"""
    initial_hrus: int = 0
    final_hrus: int = 0
    similar_merges: List[MergeRecord] = field(default_factory=list)
    merges: List[MergeRecord] = field(default_factory=list)
    dropped: List[DroppedRecord] = field(default_factory=list)
    unmerged: List[UnmergedRecord] = field(default_factory=list)

    @property
    def dropped_area(self) -> float:
        return float(sum(record.area for record in self.dropped))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = asdict(self)
        data['dropped_area'] = self.dropped_area
        return data

    def to_frame(self) -> pd.DataFrame:
        """One row per action: similar_merge, merge, drop or unmerged"""
        rows = []
        for record in self.similar_merges:
            rows.append({'Action': 'similar_merge', 'ID': record.source_id, 'TargetID': record.target_id,
                         'SBID': record.subbasin_id, 'Area': record.area, 'Reason': ''})
        for record in self.merges:
            rows.append({'Action': 'merge', 'ID': record.source_id, 'TargetID': record.target_id,
                         'SBID': record.subbasin_id, 'Area': record.area, 'Reason': ''})
        for record in self.dropped:
            rows.append({'Action': 'drop', 'ID': record.hru_id, 'TargetID': -1,
                         'SBID': record.subbasin_id, 'Area': record.area, 'Reason': ''})
        for record in self.unmerged:
            rows.append({'Action': 'unmerged', 'ID': record.hru_id, 'TargetID': -1,
                         'SBID': record.subbasin_id, 'Area': record.area, 'Reason': record.reason})
        return pd.DataFrame(rows, columns=['Action', 'ID', 'TargetID', 'SBID', 'Area', 'Reason'])


@dataclass
class ConsolidationResult:
    hrus: pd.DataFrame
    subbasins: pd.DataFrame
    summary: pd.DataFrame
    report: ConsolidationReport


def _circular_difference(a: float, b: float) -> float:
    """Smallest angle between two aspects, in degrees"""
    diff = abs(a - b) % 360.0
    return min(diff, 360.0 - diff)


def merge_similar_hrus(hrus: pd.DataFrame,
                       config: HRUCleaningConfig,
                       report: Optional[ConsolidationReport] = None) -> pd.DataFrame:
    """
    Merge HRUs of a subbasin that share every class and have close terrain attributes

    HRUs are scanned in ID order; each HRU absorbs every later HRU with identical
    class columns whose elevation, slope and aspect differ by less than the
    configured tolerances. Area is summed, Elevation/Slope/Latitude/Longitude become
    area-weighted means and Aspect the area-weighted circular mean. Locked HRUs are
    ignored, protected HRUs may absorb but are never absorbed.

    Args:
        hrus: Validated HRU table
        config: Cleaning parameters (elev_tol, slope_tol, aspect_tol, exemptions)
        report: Optional report receiving one MergeRecord per absorbed HRU

    Returns:
        New HRU table without the absorbed HRUs
    """
    df = hrus.copy(deep=True).set_index('ID', drop=False)
    protected = set(config.protected_ids)
    locked = set(config.locked_ids)
    geo = is_geo_table(hrus)

    class_cols = [col for col in CLASS_COLUMNS if col in df.columns]
    tolerances = {'Elevation': config.elev_tol, 'Slope': config.slope_tol}
    weighted_cols = [col for col in ('Elevation', 'Slope', 'Latitude', 'Longitude') if col in df.columns]

    removed: Set[int] = set()
    for sbid in sorted(df['SBID'].unique()):
        ids = sorted(df.index[df['SBID'] == sbid])
        for pos, keep_id in enumerate(ids):
            if keep_id in removed or keep_id in locked:
                continue
            for other_id in ids[pos + 1:]:
                if other_id in removed or other_id in locked or other_id in protected:
                    continue

                keep = df.loc[keep_id]
                other = df.loc[other_id]

                if any(keep[col] != other[col] for col in class_cols):
                    continue

                similar = True
                for col, tol in tolerances.items():
                    if col in df.columns and not abs(keep[col] - other[col]) < tol:
                        similar = False
                if 'Aspect' in df.columns and not _circular_difference(keep['Aspect'], other['Aspect']) < config.aspect_tol:
                    similar = False
                if not similar:
                    continue

                area_keep = keep['Area']
                area_other = other['Area']
                total = area_keep + area_other

                for col in weighted_cols:
                    df.at[keep_id, col] = (keep[col] * area_keep + other[col] * area_other) / total
                if 'Aspect' in df.columns:
                    sin_sum = area_keep * math.sin(math.radians(keep['Aspect'])) + area_other * math.sin(math.radians(other['Aspect']))
                    cos_sum = area_keep * math.cos(math.radians(keep['Aspect'])) + area_other * math.cos(math.radians(other['Aspect']))
                    df.at[keep_id, 'Aspect'] = math.degrees(math.atan2(sin_sum, cos_sum)) % 360.0
                if geo:
                    df.at[keep_id, 'geometry'] = keep['geometry'].union(other['geometry'])
                df.at[keep_id, 'Area'] = total

                removed.add(other_id)
                if report is not None:
                    report.similar_merges.append(MergeRecord(int(other_id), int(keep_id), int(sbid), float(area_other)))
                logger.debug(f"    Similar HRU {other_id} merged into HRU {keep_id} (subbasin {sbid})")

    if removed:
        logger.info(f"Merged {len(removed)} HRUs into similar HRUs of the same subbasin")

    return df.loc[~df.index.isin(removed)].reset_index(drop=True)


class HRUConsolidator:
    """
    Consolidates HRUs smaller than a fraction of their subbasin area.

    Each subbasin is processed on its own. The smallest eligible HRU (not locked,
    not protected, area below area_tol * subbasin area) is merged into a target
    chosen from the remaining HRUs of the subbasin, ranked by:

    1. matching class columns in importance order (default: LandUse only)
    2. normalised distance over the similarity columns (Elevation, Slope, Aspect);
       each difference is divided by the attribute's range within the subbasin,
       aspect uses the circular difference divided by 180
    3. larger area, then lower ID

    This is repeated until no eligible HRU remains. With merge disabled, every
    eligible HRU is dropped instead and its area leaves the subbasin.
    """

    def __init__(self, config: HRUCleaningConfig = None):
        self.config = config or HRUCleaningConfig()

        errors = self.config.validate()
        if errors:
            raise ConfigurationError("Invalid HRU cleaning parameters: " + "; ".join(errors))

        self.protected_ids = set(self.config.protected_ids)
        self.locked_ids = set(self.config.locked_ids)

    def consolidate(self, hrus: pd.DataFrame, subbasins: pd.DataFrame) -> ConsolidationResult:
        """
        Apply consolidation to an HRU table

        Args:
            hrus: HRU table (DataFrame or GeoDataFrame) with ID, SBID, Area, LandUse
            subbasins: SubBasin table with SBID

        Returns:
            ConsolidationResult with the new HRU table, the untouched SubBasin table,
            the derived subbasin summary and the report

        Raises:
            HRUTableError: If either table is malformed
        """
        hru_df, sb_df = validate_tables(hrus, subbasins)
        report = ConsolidationReport(initial_hrus=len(hru_df))

        logger.info(f"Starting HRU consolidation with {len(hru_df)} initial HRUs")
        logger.info(f"Target: {self.config.area_tol * 100}% minimum area per subbasin "
                    f"({'merge' if self.config.merge else 'drop'} small HRUs)")

        self._warn_unknown_ids(hru_df)

        if self.config.merge_similar and not self.config.merge:
            logger.warning("merge_similar is ignored when merge is disabled, drop mode moves no area between HRUs")
        elif self.config.merge_similar:
            hru_df = merge_similar_hrus(hru_df, self.config, report)

        if self.config.area_tol > 0:
            hru_df = self._remove_small_hrus(hru_df, report)
        else:
            logger.info("Area tolerance is 0, no HRU is below threshold")

        report.final_hrus = len(hru_df)
        summary = summarize_subbasins(hru_df, sb_df)

        logger.info("=== CONSOLIDATION SUMMARY ===")
        logger.info(f"Initial HRUs: {report.initial_hrus}")
        logger.info(f"Final HRUs: {report.final_hrus}")
        logger.info(f"HRUs merged: {len(report.merges) + len(report.similar_merges)}")
        logger.info(f"HRUs dropped: {len(report.dropped)} ({report.dropped_area:.6f} km²)")
        if report.unmerged:
            logger.warning(f"HRUs left below threshold without merge target: "
                           f"{[record.hru_id for record in report.unmerged]}")

        return ConsolidationResult(hrus=hru_df, subbasins=sb_df, summary=summary, report=report)

    def _warn_unknown_ids(self, hru_df: pd.DataFrame):
        known = set(hru_df['ID'])
        for name, ids in (('protected', self.protected_ids), ('locked', self.locked_ids)):
            unknown = sorted(ids - known)
            if unknown:
                logger.warning(f"Ignoring {name} HRU IDs not present in the HRU table: {unknown}")

    def _is_exempt(self, hru_id: int) -> bool:
        return hru_id in self.locked_ids or hru_id in self.protected_ids

    def _remove_small_hrus(self, hru_df: pd.DataFrame, report: ConsolidationReport) -> pd.DataFrame:
        df = hru_df.set_index('ID', drop=False)
        geo = is_geo_table(hru_df)
        removed: Set[int] = set()

        subids = np.unique(df['SBID'].values)
        logger.info(f"Processing {len(subids)} subbasins")

        for subid in subids:
            sub_hru_info = df.loc[df['SBID'] == subid]
            areas = {int(hru_id): float(area) for hru_id, area in sub_hru_info['Area'].items()}

            # Threshold is fixed from the subbasin area of the input snapshot
            subbasin_area = sum(areas.values())
            subarea_thrs = self.config.area_tol * subbasin_area

            logger.debug(f"  Subbasin {subid}: area {subbasin_area:.6f} km², "
                         f"threshold {subarea_thrs:.6f} km², {len(areas)} HRUs")

            if self.config.merge:
                geometries = {int(hru_id): geom for hru_id, geom in sub_hru_info['geometry'].items()} if geo else None
                self._merge_subbasin(int(subid), sub_hru_info, areas, subarea_thrs, removed, geometries, report)
                for hru_id, area in areas.items():
                    df.at[hru_id, 'Area'] = area
                if geo:
                    for hru_id, geom in geometries.items():
                        if hru_id in areas:
                            df.at[hru_id, 'geometry'] = geom
            else:
                self._drop_subbasin(int(subid), areas, subarea_thrs, removed, report)

        return df.loc[~df.index.isin(removed)].reset_index(drop=True)

    def _eligible(self, areas: Dict[int, float], threshold: float, skip: Iterable[int]) -> List[int]:
        return [hru_id for hru_id, area in areas.items()
                if area < threshold and not self._is_exempt(hru_id) and hru_id not in skip]

    def _drop_subbasin(self, subid: int, areas: Dict[int, float], threshold: float,
                       removed: Set[int], report: ConsolidationReport):
        for hru_id in sorted(self._eligible(areas, threshold, ())):
            removed.add(hru_id)
            report.dropped.append(DroppedRecord(hru_id, subid, areas[hru_id]))
            logger.debug(f"    Dropped HRU {hru_id} ({areas[hru_id]:.6f} km²) from subbasin {subid}")

        if areas and removed.issuperset(areas):
            logger.warning(f"    Subbasin {subid} has no HRUs left after dropping, its SubBasins row is kept without HRUs")

    def _merge_subbasin(self, subid: int, sub_hru_info: pd.DataFrame, areas: Dict[int, float],
                        threshold: float, removed: Set[int], geometries: Optional[Dict],
                        report: ConsolidationReport):
        unmergeable: Set[int] = set()
        similarity = self._similarity_matrix(sub_hru_info)
        class_values = self._class_values(sub_hru_info)

        # Every pass removes one HRU or marks one unmergeable, so the loop terminates
        while True:
            eligible = self._eligible(areas, threshold, unmergeable)
            if not eligible:
                break

            hruid = min(eligible, key=lambda hru_id: (areas[hru_id], hru_id))
            target_id = self._select_target(hruid, areas, similarity, class_values)

            if target_id is None:
                unmergeable.add(hruid)
                reason = "no eligible merge target in subbasin"
                report.unmerged.append(UnmergedRecord(hruid, subid, areas[hruid], reason))
                logger.warning(f"    HRU {hruid} in subbasin {subid} is below threshold but has {reason}")
                continue

            area = areas.pop(hruid)
            areas[target_id] += area
            if geometries is not None:
                geometries[target_id] = geometries[target_id].union(geometries.pop(hruid))

            removed.add(hruid)
            report.merges.append(MergeRecord(hruid, target_id, subid, area))
            logger.debug(f"    Merging HRU {hruid} ({area:.6f} km²) into HRU {target_id}")

    def _class_values(self, sub_hru_info: pd.DataFrame) -> Dict[int, tuple]:
        match_cols = [col for col in self.config.match_columns if col in sub_hru_info.columns]
        if not match_cols:
            return {int(hru_id): () for hru_id in sub_hru_info.index}
        return {int(hru_id): tuple(row) for hru_id, row in zip(sub_hru_info.index,
                                                                 sub_hru_info[match_cols].itertuples(index=False))}

    def _similarity_matrix(self, sub_hru_info: pd.DataFrame) -> Dict[int, Dict[int, float]]:
        """Pairwise normalised attribute distance between the HRUs of one subbasin"""
        ids = [int(hru_id) for hru_id in sub_hru_info.index]
        sim_cols = [col for col in self.config.similarity_columns if col in sub_hru_info.columns]

        squared = np.zeros((len(ids), len(ids)))
        for col in sim_cols:
            values = sub_hru_info[col].astype('float64').values
            if col == 'Aspect':
                diff = np.abs(values[:, None] - values[None, :]) % 360.0
                term = np.minimum(diff, 360.0 - diff) / 180.0
            else:
                value_range = np.nanmax(values) - np.nanmin(values) if np.any(~np.isnan(values)) else 0.0
                if value_range > 0:
                    term = np.abs(values[:, None] - values[None, :]) / value_range
                else:
                    term = np.where(np.isnan(values[:, None] - values[None, :]), np.nan, 0.0)
            # A missing value counts as the largest possible difference
            term = np.where(np.isnan(term), 1.0, term)
            squared += term ** 2

        distance = np.sqrt(squared)
        return {hru_id: dict(zip(ids, distance[i])) for i, hru_id in enumerate(ids)}

    def _select_target(self, hruid: int, areas: Dict[int, float],
                       similarity: Dict[int, Dict[int, float]],
                       class_values: Dict[int, tuple]) -> Optional[int]:
        candidates = [hru_id for hru_id in areas
                      if hru_id != hruid
                      and (hru_id not in self.locked_ids or self.config.locked_receives_area)]
        if not candidates:
            return None

        small_classes = class_values[hruid]

        def rank(hru_id):
            matches = tuple(0 if a == b else 1 for a, b in zip(class_values[hru_id], small_classes))
            return (matches, similarity[hruid][hru_id], -areas[hru_id], hru_id)

        return min(candidates, key=rank)


def clean_hrus(hrus: pd.DataFrame,
               subbasins: pd.DataFrame,
               area_tol: float,
               protected_ids: Iterable[int] = None,
               locked_ids: Iterable[int] = None,
               merge: bool = True,
               **kwargs) -> ConsolidationResult:
    """
    Convenience function to consolidate HRUs with keyword parameters

    Args:
        hrus: HRU table
        subbasins: SubBasin table
        area_tol: Minimum HRU area as fraction of subbasin area, in [0, 1)
        protected_ids: HRUs that can never be removed
        locked_ids: HRUs that are fully exempt
        merge: Merge small HRUs into neighbours (True) or drop them (False)
        **kwargs: Further HRUCleaningConfig fields

    Returns:
        ConsolidationResult
    """
    config = HRUCleaningConfig(
        area_tol=area_tol,
        merge=merge,
        protected_ids=[int(hru_id) for hru_id in (protected_ids or [])],
        locked_ids=[int(hru_id) for hru_id in (locked_ids or [])],
        **kwargs
    )
    return HRUConsolidator(config).consolidate(hrus, subbasins)
