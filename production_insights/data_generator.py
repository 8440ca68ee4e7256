"""
Production Demo Data Generator
Description: Generates realistic synthetic orders, materials and production runs
for switchgear cell manufacturing, written as the CSV extracts CsvRecordStore reads
"""

import argparse
import logging
import os
import random
from datetime import datetime, timedelta
from typing import Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

CELL_TYPES = ["RM 36 LB", "RM 36 CB", "RM 36 FL", "RM 36 BC"]

MATERIAL_CATALOGUE = [
    ("MAT-1001", "Vacuum circuit breaker 36kV"),
    ("MAT-1002", "Load break switch"),
    ("MAT-1003", "Earthing switch"),
    ("MAT-1004", "Current transformer"),
    ("MAT-1005", "Voltage transformer"),
    ("MAT-1006", "Protection relay"),
    ("MAT-1007", "Copper busbar set"),
    ("MAT-1008", "Cable termination kit"),
    ("MAT-1009", "Surge arrester"),
    ("MAT-1010", "Panel enclosure"),
    ("MAT-1011", "Control wiring harness"),
    ("MAT-1012", "Capacitive voltage indicator"),
]

CUSTOMERS = [
    "Northgrid Utilities", "Delta Energy", "Metro Rail Power", "Harbor Industrial Park",
    "Sunfield Solar", "Eastline Water Authority", "Summit Data Centers", "Riverbend Steel",
]

DEPARTMENT_HOURS = {
    # department: (min planned hours, max planned hours) per cell
    "design": (4, 10),
    "assembly": (12, 30),
    "wiring": (8, 20),
    "testing": (3, 8),
}


class ProductionDataGenerator:
    """Generates synthetic production data with realistic patterns"""

    def __init__(self, output_dir: str = "data", as_of: Optional[datetime] = None,
                 n_completed: int = 120, n_open: int = 40, seed: int = 42):
        self.output_dir = output_dir
        self.as_of = as_of or datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
        self.n_completed = n_completed
        self.n_open = n_open

        # Per-instance random streams, seeded for reproducibility
        self.rng = np.random.default_rng(seed)
        self.random = random.Random(seed)

        # Generated data storage
        self.orders = None
        self.materials = None
        self.production_runs = None
        self.production_departments = None

    def generate_all(self):
        """Generate all synthetic data"""
        logger.info("Generating production data as of %s", self.as_of.date())

        self._generate_orders()
        self._generate_materials()
        self._generate_production()

        self._save_all()
        logger.info("Data generation complete, files saved to %s", self.output_dir)

        return self

    def _generate_orders(self):
        """Completed orders over the last six months plus open orders due soon"""
        orders_list = []

        for i in range(1, self.n_completed + self.n_open + 1):
            is_completed = i <= self.n_completed
            cell_type = self.random.choice(CELL_TYPES)
            # Most orders are small, a few are large substation packages
            cell_count = int(np.clip(self.rng.lognormal(mean=1.2, sigma=0.6), 1, 40))

            if is_completed:
                completion_date = self.as_of - timedelta(days=self.random.randint(1, 180))
                delivery_date = completion_date + timedelta(days=self.random.randint(-5, 10))
                status = "completed"
                previous_delays = 0
            else:
                completion_date = None
                delivery_date = self.as_of + timedelta(days=self.random.randint(3, 60))
                status = self.random.choices(
                    ["planning", "waiting", "production"], weights=[0.3, 0.3, 0.4]
                )[0]
                previous_delays = int(self.rng.poisson(0.4))

            orders_list.append({
                "id": f"ORD-{i:05d}",
                "order_no": f"SO-{self.as_of.year}-{i:05d}",
                "customer": self.random.choice(CUSTOMERS),
                "cell_type": cell_type,
                "cell_count": cell_count,
                "status": status,
                "delivery_date": delivery_date,
                "completion_date": completion_date,
                "previous_delays": previous_delays,
            })

        self.orders = pd.DataFrame(orders_list)
        logger.info("  Generated %d orders", len(self.orders))

    def _generate_materials(self):
        """Bill of materials per order; open orders may still be waiting for parts"""
        materials_list = []
        material_id = 1

        for _, order in self.orders.iterrows():
            n_lines = self.random.randint(3, 7)
            for code, name in self.random.sample(MATERIAL_CATALOGUE, n_lines):
                quantity = order.cell_count * self.random.choice([1, 1, 2, 3])

                if order.status == "completed":
                    in_stock = True
                    expected_supply = None
                    need_date = None
                else:
                    in_stock = self.random.random() > 0.25
                    need_date = order.delivery_date - timedelta(days=self.random.randint(7, 20))
                    if in_stock:
                        expected_supply = None
                    else:
                        # Unreliable suppliers sometimes slip past the need date or today
                        expected_supply = self.as_of + timedelta(days=self.random.randint(-10, 30))

                materials_list.append({
                    "id": f"MLN-{material_id:06d}",
                    "code": code,
                    "name": name,
                    "order_id": order.id,
                    "quantity": quantity,
                    "in_stock": in_stock,
                    "expected_supply_date": expected_supply,
                    "order_need_date": need_date,
                    "supplier_id": f"SUP-{self.random.randint(1, 12):03d}",
                })
                material_id += 1

        self.materials = pd.DataFrame(materials_list)
        logger.info("  Generated %d material lines", len(self.materials))

    def _generate_production(self):
        """One production run per completed order with department hours"""
        runs_list = []
        departments_list = []

        # Wiring is the chronic bottleneck in this plant
        overrun_bias = {"design": 1.0, "assembly": 1.05, "wiring": 1.25, "testing": 1.0}

        completed = self.orders[self.orders.status == "completed"]
        for _, order in completed.iterrows():
            production_days = int(np.clip(self.rng.normal(15 + 2 * np.log2(order.cell_count + 1), 3), 5, 60))
            end_date = order.completion_date - timedelta(days=self.random.randint(0, 3))
            start_date = end_date - timedelta(days=production_days)

            runs_list.append({
                "order_id": order.id,
                "start_date": start_date,
                "end_date": end_date,
            })

            for department, (low, high) in DEPARTMENT_HOURS.items():
                planned = round(self.random.uniform(low, high) * order.cell_count, 1)
                actual = round(planned * self.rng.uniform(0.85, 1.3) * overrun_bias[department], 1)
                departments_list.append({
                    "order_id": order.id,
                    "department": department,
                    "planned_hours": planned,
                    "actual_hours": actual,
                })

        self.production_runs = pd.DataFrame(runs_list)
        self.production_departments = pd.DataFrame(departments_list)
        logger.info("  Generated %d production runs", len(self.production_runs))

    def _save_all(self):
        """Save all generated data to CSV files"""
        os.makedirs(self.output_dir, exist_ok=True)
        datasets = {
            "orders": self.orders,
            "materials": self.materials,
            "production_runs": self.production_runs,
            "production_departments": self.production_departments,
        }

        for name, df in datasets.items():
            filepath = os.path.join(self.output_dir, f"{name}.csv")
            df.to_csv(filepath, index=False)
            logger.info("  Saved %s", filepath)

    def get_summary(self) -> dict:
        """Return summary statistics of generated data"""
        return {
            "orders": len(self.orders),
            "completed_orders": int((self.orders.status == "completed").sum()),
            "open_orders": int((self.orders.status != "completed").sum()),
            "material_lines": len(self.materials),
            "missing_material_lines": int((~self.materials.in_stock.astype(bool)).sum()),
            "production_runs": len(self.production_runs),
            "as_of": str(self.as_of.date()),
        }


def main(argv=None):
    parser = argparse.ArgumentParser(description='Generate demo production data')
    parser.add_argument('--output-dir', default='data', help='Directory for the CSV files')
    parser.add_argument('--as-of', default=None, help='Reference date (YYYY-MM-DD), defaults to today')
    parser.add_argument('--seed', type=int, default=42, help='Random seed')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    as_of = datetime.strptime(args.as_of, '%Y-%m-%d') if args.as_of else None
    generator = ProductionDataGenerator(output_dir=args.output_dir, as_of=as_of, seed=args.seed)
    generator.generate_all()

    print("\n" + "="*50)
    print("DATA GENERATION SUMMARY")
    print("="*50)
    for key, value in generator.get_summary().items():
        print(f"  {key}: {value}")


if __name__ == "__main__":
    main()
