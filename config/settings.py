import logging
import os
from pathlib import Path

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Local data files (page sizes, pending checkout sessions)
DATA_DIR = Path(os.environ.get("MEMORIAL_DATA_DIR", PROJECT_ROOT / "data"))
PAGE_SIZE_FILE = DATA_DIR / "page_sizes.json"
PENDING_CHECKOUTS_FILE = DATA_DIR / "pending_paymongo_checkouts.json"

# Remote API
API_BASE_URL = os.environ.get("MEMORIAL_API_BASE_URL", "http://localhost/api")
API_TIMEOUT = float(os.environ.get("MEMORIAL_API_TIMEOUT", "30"))

# Public address of this app, used for gateway return links
APP_BASE_URL = os.environ.get("MEMORIAL_APP_URL", "http://localhost:8501")

# Checkout status polling
CHECKOUT_POLL_INITIAL_DELAY = 2.0
CHECKOUT_POLL_INTERVAL = 5.0
CHECKOUT_POLL_WINDOW = 180.0  # seconds
AUTO_SYNC_INTERVAL = 120.0
FOLLOWUP_TICK = 1.0  # page fragments check for due polls this often
IMPORT_ERROR_DELAY = 3.0

# Overdue penalty, applied at the office only
OVERDUE_PENALTY_RATE = 0.03

# Pagination
PAGE_SIZE_OPTIONS = [5, 10, 20, 50]
DEFAULT_PAGE_SIZE = 10

# Reports
COMPANY_NAME = "Divine Life Memorial Park"
REPORT_SHEET_PASSWORD = "REPORT"
CURRENCY_SYMBOL = "₱"

# Map
MAIN_GATE = (14.259766592217202, 121.1646436819092)
CEMETERY_BOUNDS = {"north": 14.2611, "south": 14.2585, "east": 121.1655, "west": 121.1603}
DEFAULT_MAP_ZOOM = 19
MAP_MIN_ZOOM = 18
MAP_MAX_ZOOM = 26
WARP_GRID_SIZE = 20
PATH_FIT_PADDING = 60
PATH_ANIMATION_DELAY = 0.5
PATH_ANIMATION_INTERVAL = 0.3
DEFAULT_UI_CONFIG = {"sectorOverlayOpacity": 0.9, "directionalOpacity": 1.0}
SECTOR_IMAGE_DIR = PROJECT_ROOT / "static" / "map"

# Page config
PAGE_TITLE = "Memorial Park Dashboard"
PAGE_ICON = "🕊️"
LAYOUT = "wide"

# Chart colors
COLORS = {
    "primary": "#1f77b4",
    "success": "#2ca02c",
    "danger": "#d62728",
    "warning": "#bcbd22",
    "info": "#17becf",
    "paid": "#2ca02c",
    "unpaid": "#d62728",
    "overdue": "#ff7f0e",
    "route": "#0000FF",
}

# Logging
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = None):
    """Set up root logging; MEMORIAL_LOG_LEVEL overrides the level"""
    level = level or os.environ.get("MEMORIAL_LOG_LEVEL", "INFO")
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
