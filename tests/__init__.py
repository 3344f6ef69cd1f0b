"""
Campus Assistant Test Suite

Unit tests for the orchestration core, tools, services and clients.
Run tests with: pytest tests/
Live Gemini tests are marked ``integration`` and deselected by default.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Test configuration
TEST_DATA_DIR = Path(__file__).parent / "fixtures"
SAMPLE_KNOWLEDGE_BASE_PATH = TEST_DATA_DIR / "knowledge_base.json"

__all__ = [
    "TEST_DATA_DIR",
    "SAMPLE_KNOWLEDGE_BASE_PATH",
]
