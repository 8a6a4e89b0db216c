"""Tests for depth/material column detection."""

import pytest

from strata.config.settings import DetectionConfig
from strata.pipeline.detector import TabularFieldDetector, detect_columns
from strata.pipeline.grid import Grid


def _grid_with_headers(depth_col: int, material_col: int, width: int = 6) -> Grid:
    rows = []
    header = [None] * width
    header[depth_col] = "Depth"
    header[material_col] = "Material"
    rows.append(header)
    for depth, material in [(0, "Clay"), (5, "Sand"), (10, "Gravel")]:
        row = [None] * width
        row[depth_col] = depth
        row[material_col] = material
        rows.append(row)
    return Grid.from_values(rows)


class TestHeaderPass:
    def test_basic_headers(self, borehole_grid):
        detection = detect_columns(borehole_grid)
        assert detection.depth.index == 0
        assert detection.depth.header == "Depth (ft)"
        assert detection.depth.header_row == 0
        assert detection.material.index == 1
        assert detection.material.header == "Material"
        assert detection.depth_unit == "feet"
        assert detection.data_start_row == 1

    @pytest.mark.parametrize("depth_col", range(6))
    def test_depth_index_invariant(self, depth_col):
        material_col = (depth_col + 3) % 6
        detection = detect_columns(_grid_with_headers(depth_col, material_col))
        assert detection.depth.index == depth_col
        assert detection.material.index == material_col

    @pytest.mark.parametrize("material_col", range(6))
    def test_material_index_invariant(self, material_col):
        depth_col = (material_col + 1) % 6
        detection = detect_columns(_grid_with_headers(depth_col, material_col))
        assert detection.material.index == material_col
        assert detection.depth.index == depth_col

    @pytest.mark.parametrize(
        "header", ["depth", "DEPTH (M)", "Elevation", "Elev.", "From", "Top", "Start Depth"]
    )
    def test_depth_synonyms(self, header):
        grid = Grid.from_values([[header, "Lithology"], [0, "Clay"], [2, "Sand"], [4, "Silt"]])
        assert detect_columns(grid).depth.index == 0

    @pytest.mark.parametrize(
        "header",
        ["Strata", "Soil Type", "Soil", "Lithology", "Description", "Layer", "Formation",
         "Geology", "Rock Type", "Unit"],
    )
    def test_material_synonyms(self, header):
        grid = Grid.from_values([["Depth", header], [0, "Clay"], [2, "Sand"], [4, "Silt"]])
        assert detect_columns(grid).material.index == 1

    def test_header_below_title_rows(self):
        grid = Grid.from_values(
            [
                ["Borehole BH-7 log"],
                [],
                ["Depth (m)", "Description"],
                [0, "Topsoil"],
                [0.5, "Clay"],
                [2.0, "Sand"],
            ]
        )
        detection = detect_columns(grid)
        assert detection.depth.header_row == 2
        assert detection.material.header_row == 2
        assert detection.data_start_row == 3
        assert detection.depth_unit == "meters"

    def test_header_beyond_scan_window_is_ignored(self):
        rows = [["note"]] * 6 + [["Depth", "Material"], [0, "Clay"], [5, "Sand"]]
        detection = detect_columns(Grid.from_values(rows))
        assert detection.depth is None or detection.depth.inferred

    def test_first_match_wins_row_major(self):
        grid = Grid.from_values(
            [["Top", "Depth", "Material"], [0, 0, "Clay"], [1, 5, "Sand"], [2, 10, "Silt"]]
        )
        assert detect_columns(grid).depth.index == 0

    def test_custom_pattern_lists(self):
        grid = Grid.from_values([["Tiefe", "Boden"], [0, "Ton"], [1, "Sand"], [2, "Kies"]])
        detector = TabularFieldDetector(patterns={"depth": [r"^tiefe$"], "material": [r"^boden$"]})
        detection = detector.detect_columns(grid)
        assert detection.depth.index == 0
        assert detection.material.index == 1
        assert not detection.depth.inferred


class TestFallbackPass:
    def test_infers_columns_from_data(self):
        grid = Grid.from_values(
            [["A", "B"], [0, "clay"], [2, "sand"], [4, "silt"], [6, "gravel"]]
        )
        detection = detect_columns(grid)
        assert detection.depth.index == 0
        assert detection.depth.inferred
        assert detection.material.index == 1
        assert detection.material.inferred
        assert detection.data_start_row == 1
        assert detection.depth_unit == "feet"

    def test_headerless_sheet_keeps_first_row(self):
        grid = Grid.from_values([[0, "clay"], [2, "sand"], [4, "silt"], [6, "gravel"]])
        detection = detect_columns(grid)
        assert detection.depth.header_row == -1
        assert detection.data_start_row == 0

    def test_depth_requires_increasing_values(self):
        grid = Grid.from_values(
            [["A", "B"], [9, "clay"], [3, "sand"], [7, "silt"], [1, "gravel"]]
        )
        assert detect_columns(grid).depth is None

    def test_depth_requires_minimum_samples(self):
        grid = Grid.from_values([["A", "B"], [0, "clay"], [2, "sand"]])
        assert detect_columns(grid).depth is None

    def test_material_requires_mostly_text(self):
        grid = Grid.from_values(
            [["Depth", "B"], [0, 1], [2, 2], [4, "sand"], [6, 3]]
        )
        assert detect_columns(grid).material is None

    def test_material_ratio_is_configurable(self):
        grid = Grid.from_values(
            [["Depth", "B"], [0, 1], [2, 2], [4, "sand"], [6, 3]]
        )
        config = DetectionConfig(material_text_ratio=0.25)
        assert detect_columns(grid, config).material.index == 1

    def test_empty_grid(self):
        detection = detect_columns(Grid())
        assert detection.depth is None
        assert detection.material is None
