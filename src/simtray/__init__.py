"""
SimTray Suite - Sims 4 save household reader and tray exporter.

Reads DBPF save packages, projects their households and writes eligible
households as tray bundles for the game's Library.
"""

__version__ = "1.0.0"
