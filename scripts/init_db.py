#!/usr/bin/env python3
"""Create (or recreate) the SalonBook tables."""
import argparse
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from salonbook import create_app
from salonbook.extensions import db


def init_database(drop: bool = False) -> None:
    app = create_app()
    with app.app_context():
        if drop:
            db.drop_all()
            print("🗑️  Dropped existing tables")
        db.create_all()
        print(f"✅ Tables ready in {db.engine.url.render_as_string(hide_password=True)}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize the SalonBook database.")
    parser.add_argument("--drop", action="store_true", help="Drop all tables first (destroys data)")
    return parser.parse_args()


if __name__ == "__main__":
    init_database(drop=parse_args().drop)
