"""
Path configuration for the Bible Notes Companion.

Everything lives under PROJECT_ROOT unless BNC_HOME points elsewhere.
"""

import os
from pathlib import Path

# Project root is one level up from bnc/
PROJECT_ROOT = Path(__file__).parent.parent
HOME_DIR = Path(os.environ.get("BNC_HOME", PROJECT_ROOT))
DB_PATH = HOME_DIR / "companion.sqlite"
DATA_DIR = HOME_DIR / "data"
EXPORT_DIR = HOME_DIR / "exports"
DEVICE_ID_PATH = DATA_DIR / "device_id"

# Shipped with the package (book catalog)
PACKAGE_DATA_DIR = Path(__file__).parent / "data"


def ensure_basic_dirs() -> None:
    """
    Ensure essential directories exist:
    - data/
    - exports/
    """
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    EXPORT_DIR.mkdir(parents=True, exist_ok=True)
