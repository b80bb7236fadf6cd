import sys
from pathlib import Path

# Keep the package importable when pytest runs from a plain checkout.
ROOT_DIR = Path(__file__).parent.absolute()

if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
