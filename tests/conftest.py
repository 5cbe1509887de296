# tests/conftest.py
import os

# headless backends for the GUI hosts
os.environ.setdefault("MPLBACKEND", "Agg")
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
