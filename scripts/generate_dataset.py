"""
Sample Warehouse Generator
Writes a synthetic gold-layer star schema as CSV files.
"""

import argparse
from pathlib import Path

from sales_insights.data.generators import StarSchemaGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "gold"


def main():
    parser = argparse.ArgumentParser(description="Generate a sample star-schema warehouse")
    parser.add_argument("--output-dir", default=str(OUTPUT_DIR), help="Directory for the CSV files")
    parser.add_argument("--customers", type=int, default=1000)
    parser.add_argument("--products", type=int, default=100)
    parser.add_argument("--orders", type=int, default=5000)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    generator = StarSchemaGenerator(seed=args.seed)
    tables = generator.generate(customers=args.customers, products=args.products, orders=args.orders)
    written = generator.write_csv(tables, args.output_dir)

    for name, path in written.items():
        print(f"{name}: {path}")


if __name__ == "__main__":
    main()
