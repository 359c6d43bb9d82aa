"""
Shared pytest configuration.

This file ensures the project root is on sys.path so that `import oneapi`
works consistently in all tests, and keeps the settings away from any
real database or Redis.
"""

import os
import sys
from pathlib import Path

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("CHANNEL_CACHE_TTL", "0")

# Ensure project root is importable for test modules.
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))
