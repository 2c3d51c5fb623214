"""Root conftest.py: puts src/ on sys.path so tests run without an install."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))
