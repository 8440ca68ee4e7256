"""
Tests for the insight export command
"""

import json
import os
from datetime import datetime

import pandas as pd
import pytest

from production_insights.config import AnalyticsConfig
from production_insights.data_generator import ProductionDataGenerator
from reporting.insight_export import InsightExporter, main

AS_OF = datetime(2024, 6, 15)

EXTRACTS = [
    "supply_risk", "delay_risk", "material_consumption", "monthly_usage",
    "department_efficiency", "bottlenecks", "cell_type_efficiency",
    "production_optimizations", "delivery_estimates",
]


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    ProductionDataGenerator(str(path), as_of=AS_OF, n_completed=40, n_open=15, seed=11).generate_all()
    return path


class TestInsightExporter:

    def test_export_all_writes_every_extract(self, data_dir, tmp_path):
        output_dir = tmp_path / "extracts"
        exporter = InsightExporter(str(data_dir), config=AnalyticsConfig(min_regression_samples=5), as_of=AS_OF)

        exports = exporter.export_all(str(output_dir), quantity=4)

        assert len(exports) == len(EXTRACTS)
        for name in EXTRACTS:
            assert os.path.exists(output_dir / f"{name}.csv")

    def test_metadata(self, data_dir, tmp_path):
        output_dir = tmp_path / "extracts"
        InsightExporter(str(data_dir), as_of=AS_OF).export_all(str(output_dir))

        with open(output_dir / "export_metadata.json") as f:
            metadata = json.load(f)

        assert metadata["as_of"] == AS_OF.isoformat()
        assert metadata["config"]["supply_time_days"] == 10
        assert metadata["summary"]["orders_analyzed"] > 0

    def test_delivery_estimates_cover_configured_cell_types(self, data_dir, tmp_path):
        output_dir = tmp_path / "extracts"
        InsightExporter(str(data_dir), as_of=AS_OF).export_all(str(output_dir), quantity=1)

        estimates = pd.read_csv(output_dir / "delivery_estimates.csv")

        assert list(estimates.cell_type) == ["RM 36 LB", "RM 36 CB", "RM 36 FL"]
        assert list(estimates.formula_days) == [35, 38, 40]

    def test_delay_extract_is_sorted_by_score(self, data_dir, tmp_path):
        output_dir = tmp_path / "extracts"
        InsightExporter(str(data_dir), as_of=AS_OF).export_all(str(output_dir))

        delays = pd.read_csv(output_dir / "delay_risk.csv")
        assert list(delays.risk_score) == sorted(delays.risk_score, reverse=True)


class TestMain:

    def test_success(self, data_dir, tmp_path):
        output_dir = tmp_path / "extracts"
        code = main(["--data-dir", str(data_dir), "--output-dir", str(output_dir), "--as-of", "2024-06-15"])

        assert code == 0
        assert os.path.exists(output_dir / "export_metadata.json")

    def test_missing_data_dir_fails(self, tmp_path):
        code = main(["--data-dir", str(tmp_path / "missing"), "--output-dir", str(tmp_path / "out")])
        assert code == 1

    def test_bad_config_fails(self, data_dir, tmp_path):
        config_path = tmp_path / "bad.json"
        config_path.write_text(json.dumps({"bottleneck_delay_policy": "median"}))

        code = main(["--data-dir", str(data_dir), "--output-dir", str(tmp_path / "out"),
                     "--config", str(config_path)])
        assert code == 1
