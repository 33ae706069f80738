"""
Root conftest.py: puts the project root on sys.path so tests import the
flat modules by bare name (``from history import ...``), the same way the
app runs.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
