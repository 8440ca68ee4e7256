"""
Insight Export Module
=====================
Runs every production insight analysis over a CSV data directory and writes
analytics-ready extracts for dashboards and reporting tools.

Usage:
    python -m reporting.insight_export --data-dir ./data --output-dir ./insight_extracts
"""

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from production_insights.config import AnalyticsConfig, load_config
from production_insights.consumption import consumption_to_frame, monthly_usage_to_frame
from production_insights.efficiency import bottlenecks_to_frame, cell_types_to_frame, departments_to_frame
from production_insights.errors import InsightError
from production_insights.planning import optimizations_to_frame
from production_insights.risk import risk_records_to_frame
from production_insights.service import InsightService
from production_insights.store import CsvRecordStore

logger = logging.getLogger(__name__)


class InsightExporter:
    """Generates insight extracts from production data."""

    def __init__(self, data_dir: str = "data",
                 config: Optional[AnalyticsConfig] = None,
                 as_of: Optional[datetime] = None):
        self.data_dir = Path(data_dir)
        self.config = config or AnalyticsConfig()
        self.as_of = as_of or datetime.now()
        self.service = InsightService(CsvRecordStore(str(self.data_dir)), config=self.config)

    async def _collect(self) -> dict:
        now = self.as_of
        supply, delays, consumption, efficiency, optimizations = await asyncio.gather(
            self.service.supply_risks(now),
            self.service.delay_risks(now),
            self.service.material_consumption(now),
            self.service.production_efficiency(now),
            self.service.production_optimizations(now),
        )
        predictor = await self.service.fit_lead_time_predictor(now)
        return {
            'supply': supply,
            'delays': delays,
            'consumption': consumption,
            'efficiency': efficiency,
            'optimizations': optimizations,
            'predictor': predictor,
        }

    def _delivery_frame(self, predictor, quantity: int) -> pd.DataFrame:
        """One estimate per configured cell type, with and without the fitted model"""
        rows = []
        for cell_type in self.config.production_days_by_cell_type:
            formula = self.service.estimate_delivery(cell_type, quantity, self.as_of, predictors=[])
            fitted = self.service.estimate_delivery(cell_type, quantity, self.as_of, predictors=[predictor])
            rows.append({
                'cell_type': cell_type,
                'quantity': quantity,
                'formula_days': formula.estimated_days,
                'formula_delivery_date': formula.estimated_delivery_date.date(),
                'model_days': fitted.estimated_days,
                'model_method': fitted.method,
                'model_confidence': fitted.confidence,
            })
        return pd.DataFrame(rows)

    def _write(self, frame: pd.DataFrame, output_dir: Path, name: str) -> str:
        output_path = output_dir / f"{name}.csv"
        frame.to_csv(output_path, index=False)
        logger.info("Exported %d rows to %s", len(frame), output_path)
        return str(output_path)

    def export_all(self, output_dir: str = "./insight_extracts", quantity: int = 1) -> Dict[str, str]:
        """Export all insight extracts plus a metadata file."""
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        results = asyncio.run(self._collect())
        efficiency = results['efficiency']

        exports = {
            'supply_risk': self._write(risk_records_to_frame(results['supply']), output_path, 'supply_risk'),
            'delay_risk': self._write(risk_records_to_frame(results['delays']), output_path, 'delay_risk'),
            'consumption': self._write(consumption_to_frame(results['consumption']), output_path, 'material_consumption'),
            'monthly_usage': self._write(monthly_usage_to_frame(results['consumption']), output_path, 'monthly_usage'),
            'departments': self._write(departments_to_frame(efficiency), output_path, 'department_efficiency'),
            'bottlenecks': self._write(bottlenecks_to_frame(efficiency), output_path, 'bottlenecks'),
            'cell_types': self._write(cell_types_to_frame(efficiency), output_path, 'cell_type_efficiency'),
            'optimizations': self._write(optimizations_to_frame(results['optimizations']), output_path, 'production_optimizations'),
            'delivery': self._write(self._delivery_frame(results['predictor'], quantity), output_path, 'delivery_estimates'),
        }

        metadata = {
            'export_timestamp': datetime.now().isoformat(),
            'as_of': self.as_of.isoformat(),
            'source_data_dir': str(self.data_dir.absolute()),
            'exports': exports,
            'summary': {
                'supply_risks': len(results['supply']),
                'delay_risks': len(results['delays']),
                'materials_analyzed': len(results['consumption']),
                'orders_analyzed': efficiency.total_orders,
                'avg_production_time': round(efficiency.avg_production_time, 2),
                'improvement_suggestions': [asdict(s) for s in efficiency.improvement_suggestions],
            },
            'config': self.config.to_dict(),
        }

        metadata_path = output_path / "export_metadata.json"
        with open(metadata_path, 'w') as f:
            json.dump(metadata, f, indent=2)

        print(f"\n{'='*60}")
        print("INSIGHT EXPORT COMPLETE")
        print(f"{'='*60}")
        print(f"Files exported to: {output_path.absolute()}")
        print(f"Metadata saved to: {metadata_path}")
        for suggestion in efficiency.improvement_suggestions:
            print(f"  - {suggestion.suggestion}")

        return exports


def main(argv=None):
    parser = argparse.ArgumentParser(description='Export production insight extracts')
    parser.add_argument('--data-dir', default='data', help='Source data directory')
    parser.add_argument('--output-dir', default='./insight_extracts', help='Output directory for extracts')
    parser.add_argument('--as-of', default=None, help='Reference date (YYYY-MM-DD), defaults to now')
    parser.add_argument('--config', default=None, help='JSON configuration file')
    parser.add_argument('--quantity', type=int, default=1, help='Cell count for delivery estimates')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        as_of = datetime.strptime(args.as_of, '%Y-%m-%d') if args.as_of else None
        exporter = InsightExporter(data_dir=args.data_dir, config=load_config(args.config), as_of=as_of)
        exporter.export_all(output_dir=args.output_dir, quantity=args.quantity)
    except (InsightError, ValueError) as exc:
        logger.error("Export failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
