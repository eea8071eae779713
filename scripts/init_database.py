#!/usr/bin/env python3
"""
Create app tables (users, conversations, messages, insurance_products, quotes)
and upsert the product catalogue from config/products.yml.

Uses DATABASE_URL environment variable. Does NOT drop existing tables.
Products are upserted by `type`, so re-running updates rules in place.
"""

from __future__ import annotations
import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# Make sure the package is importable when run from a checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from sales_agent.chatbot.product_catalog import seed_catalog
from sales_agent.database.postgres_real import PostgresDB
from sales_agent.utils.config_loader import DEFAULT_PRODUCTS_FILE, load_product_seed


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--products", type=Path, default=Path(os.getenv("PRODUCTS_FILE") or DEFAULT_PRODUCTS_FILE))
    parser.add_argument("--skip-seed", action="store_true", help="Only create tables")
    args = parser.parse_args(argv)

    url = os.environ.get("DATABASE_URL")
    if not url:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 1

    try:
        db = PostgresDB(url)
        db.ping()
        print("✅ Database connection OK")

        db.create_tables()
        tables = inspect(db.engine).get_table_names()
        print("✅ App tables now exist:", sorted(tables))

        if not args.skip_seed:
            count = seed_catalog(db, load_product_seed(args.products))
            print(f"✅ Seeded {count} product(s) from {args.products}")
        return 0

    except OperationalError as e:
        print(f"❌ Failed to connect to database: {e}", file=sys.stderr)
        return 2
    except (FileNotFoundError, ValidationError, ValueError) as e:
        print(f"❌ Invalid product seed: {e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    sys.exit(main())
