#!/usr/bin/env python3
"""Create all Glamlink tables in the configured database."""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from glamlink import create_app
from glamlink.extensions import db

def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        tables = sorted(db.metadata.tables)
        print(f"Database tables initialized: {', '.join(tables)}")

if __name__ == "__main__":
    init_database()
