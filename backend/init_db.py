#!/usr/bin/env python3
# backend/init_db.py
"""
Create the tracker tables on the database at DATABASE_URL.

Run from any directory:
    python backend/init_db.py
    python backend/init_db.py --drop   # drop all tables first
"""
import argparse
import sys
from pathlib import Path

backend_dir = Path(__file__).parent
sys.path.insert(0, str(backend_dir))

from portfolio_tracker.database import create_tables
from portfolio_tracker.utils import setup_logging


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the Portfolio Tracker tables")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()

    setup_logging()
    create_tables(drop=args.drop)
