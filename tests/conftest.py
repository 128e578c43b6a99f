import sys
import pytest
from pathlib import Path

# Make the project root importable
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


@pytest.fixture
def inventory_rows():
    """Two inventory sections as returned by the reports endpoint"""
    return [
        {"garden": "Joy Garden", "section": "A", "totalLots": 10, "availableLots": 6, "reservedLots": 1,
         "occupiedLots": 3, "soldInstallment": 2, "soldFullyPaid": 2, "occupancyRate": 40},
        {"garden": "Peace Garden", "section": "B", "totalLots": 20, "availableLots": 15, "reservedLots": 2,
         "occupiedLots": 3, "soldInstallment": 3, "soldFullyPaid": 2, "occupancyRate": 25},
    ]
