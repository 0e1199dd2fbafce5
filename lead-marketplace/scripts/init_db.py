"""
Create the marketplace tables.

Uses DATABASE_URL (see repositories.database); existing tables are left as
they are.

Usage:
    python init_db.py
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path so we can import from repositories
sys.path.insert(0, str(Path(__file__).parent.parent))

from repositories.database import create_all, create_engine_from_url, database_url_from_env


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    engine = create_engine_from_url(database_url_from_env())
    create_all(engine)
    print(f"[SUCCESS] Schema ready at {engine.url.render_as_string(hide_password=True)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
