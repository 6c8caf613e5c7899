#!/usr/bin/env python3
"""
Tests for the data_loader module.
"""
import unittest
import os
import sys
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd

# Add the parent directory to sys.path so we can import glof_risk
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from glof_risk.data.data_loader import (
    DataLoader, RecordCorrection, REGION_LABEL_FIX_1544,
    load_and_merge, apply_corrections, ensure_glof_flag, read_table,
)
from glof_risk.model.exceptions import DataError, DataIntegrityError


class TestLoadAndMerge(unittest.TestCase):
    """Tests for joining the lake tables."""

    def setUp(self):
        self.primary = pd.DataFrame({
            "lake_id": ["a", "b", "c", "d"],
            "region": ["Karakoram", "Hindu Kush", "Karakoram", "Central Himalaya"],
            "area_2018": [0.1, 0.2, 0.3, 0.4],
        })
        self.secondary = pd.DataFrame({
            "GLIMS_ID": ["b", "c", "d", "e"],
            "precip_annual": [900.0, 1000.0, 1100.0, 1200.0],
            "region": ["x", "y", "z", "w"],
        })

    def test_inner_join_keeps_matching_lakes(self):
        merged = load_and_merge(self.primary, self.secondary, "lake_id", "GLIMS_ID")
        self.assertEqual(list(merged["lake_id"]), ["b", "c", "d"])
        self.assertNotIn("GLIMS_ID", merged.columns)
        self.assertEqual(list(merged.index), [0, 1, 2])

    def test_rows_ordered_by_identifier(self):
        primary = self.primary.iloc[[3, 1, 0, 2]]
        secondary = self.secondary.iloc[[2, 0, 3, 1]]
        merged = load_and_merge(primary, secondary, "lake_id", "GLIMS_ID")
        self.assertEqual(list(merged["lake_id"]), ["b", "c", "d"])
        self.assertEqual(list(merged["precip_annual"]), [900.0, 1000.0, 1100.0])

    def test_overlapping_columns_keep_primary_values(self):
        merged = load_and_merge(self.primary, self.secondary, "lake_id", "GLIMS_ID")
        self.assertEqual(list(merged["region"]), ["Hindu Kush", "Karakoram", "Central Himalaya"])

    def test_inputs_not_modified(self):
        before = self.secondary.copy()
        load_and_merge(self.primary, self.secondary, "lake_id", "GLIMS_ID")
        pd.testing.assert_frame_equal(self.secondary, before)

    def test_missing_key_raises(self):
        with self.assertRaises(DataIntegrityError):
            load_and_merge(self.primary, self.secondary, "lake_id", "lake_id")
        with self.assertRaises(DataIntegrityError):
            load_and_merge(self.primary, self.secondary, "missing", "GLIMS_ID")

    def test_empty_join_raises(self):
        other = self.secondary.assign(GLIMS_ID=["p", "q", "r", "s"])
        with self.assertRaises(DataIntegrityError):
            load_and_merge(self.primary, other, "lake_id", "GLIMS_ID")

    def test_duplicate_identifier_raises(self):
        duplicated = pd.concat([self.primary, self.primary.iloc[[0]]], ignore_index=True)
        with self.assertRaises(DataIntegrityError):
            load_and_merge(duplicated, self.secondary, "lake_id", "GLIMS_ID")


class TestApplyCorrections(unittest.TestCase):
    """Tests for named record corrections."""

    def setUp(self):
        self.frame = pd.DataFrame({
            "lake_id": ["a", "b", "c"],
            "region": ["Karakoram", "Karakoram", "Karakoram"],
        })

    def test_correction_applied_to_copy(self):
        fix = RecordCorrection(name="fix_b", position=1, column="region", value="Eastern Himalaya")
        corrected = apply_corrections(self.frame, [fix])
        self.assertEqual(corrected.loc[1, "region"], "Eastern Himalaya")
        self.assertEqual(self.frame.loc[1, "region"], "Karakoram")

    def test_out_of_range_position_is_skipped(self):
        fix = RecordCorrection(name="far", position=10, column="region", value="x")
        corrected = apply_corrections(self.frame, [fix])
        pd.testing.assert_frame_equal(corrected, self.frame)

    def test_lake_id_guard_mismatch_raises(self):
        fix = RecordCorrection(name="guarded", position=0, column="region", value="x", lake_id="b")
        with self.assertRaises(DataIntegrityError):
            apply_corrections(self.frame, [fix])

    def test_unknown_column_raises(self):
        fix = RecordCorrection(name="bad", position=0, column="nope", value="x")
        with self.assertRaises(DataIntegrityError):
            apply_corrections(self.frame, [fix])

    def test_reference_correction_targets_record_1544(self):
        self.assertEqual(REGION_LABEL_FIX_1544.position, 1543)
        self.assertEqual(REGION_LABEL_FIX_1544.column, "region")
        frame = pd.DataFrame({"lake_id": [f"L{i}" for i in range(1600)], "region": ["Karakoram"] * 1600})
        corrected = apply_corrections(frame, [REGION_LABEL_FIX_1544])
        changed = corrected.index[corrected["region"] != frame["region"]]
        self.assertEqual(list(changed), [1543])

    def test_reference_correction_independent_of_input_order(self):
        ids = [f"G{i:05d}" for i in range(1600)]
        lakes = pd.DataFrame({"lake_id": ids, "region": ["Karakoram"] * 1600})
        climate = pd.DataFrame({"lake_id": ids, "mass_balance": np.linspace(-1.0, 0.0, 1600)})

        corrected_lakes = []
        for seed in (0, 1):
            shuffled = lakes.sample(frac=1.0, random_state=seed)
            merged = load_and_merge(shuffled, climate.sample(frac=1.0, random_state=seed + 10))
            corrected = apply_corrections(merged, [REGION_LABEL_FIX_1544])
            corrected_lakes.append(
                list(corrected.loc[corrected["region"] == "Eastern Himalaya", "lake_id"])
            )
        self.assertEqual(corrected_lakes[0], ["G01543"])
        self.assertEqual(corrected_lakes[1], ["G01543"])


class TestGlofFlag(unittest.TestCase):
    """Tests for the GLOF flag derivation."""

    def test_flag_derived_from_year(self):
        frame = pd.DataFrame({"lake_id": ["a", "b"], "glof_year": [1994.0, np.nan]})
        result = ensure_glof_flag(frame)
        self.assertEqual(list(result["glof"]), [1, 0])
        self.assertNotIn("glof", frame.columns)

    def test_neither_column_raises(self):
        with self.assertRaises(DataIntegrityError):
            ensure_glof_flag(pd.DataFrame({"lake_id": ["a"]}))


class TestDataLoader(unittest.TestCase):
    """Tests for loading the lake tables from files."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        pd.DataFrame({
            "GLIMS_ID": ["a", "b", "c"],
            "Region": ["Karakoram", "Hindu Kush", "Karakoram"],
            "glof_year": [2010.0, np.nan, np.nan],
        }).to_csv(self.dir / "lakes.csv", index=False)
        pd.DataFrame({
            "GLIMS_ID": ["a", "b", "c"],
            "mass_balance": [-0.1, -0.2, -0.3],
        }).to_csv(self.dir / "climate.csv", index=False)

    def tearDown(self):
        self.tmp.cleanup()

    def test_load_data_maps_columns_and_joins(self):
        loader = DataLoader(
            self.dir / "lakes.csv",
            self.dir / "climate.csv",
            column_mapping={"GLIMS_ID": "lake_id", "Region": "region"},
            corrections=(),
        )
        lakes = loader.load_data()
        self.assertEqual(len(lakes), 3)
        self.assertIn("lake_id", lakes.columns)
        self.assertIn("mass_balance", lakes.columns)
        self.assertEqual(list(lakes["glof"]), [1, 0, 0])

    def test_unsupported_suffix_raises(self):
        path = self.dir / "lakes.txt"
        path.write_text("x")
        with self.assertRaises(DataError):
            read_table(path)

    def test_missing_file_raises(self):
        with self.assertRaises(DataError):
            read_table(self.dir / "missing.csv")


if __name__ == "__main__":
    unittest.main()
