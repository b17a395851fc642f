"""Plugin infrastructure for the scan runner.

Currently one plugin type exists: scanner plugins, which wrap an external
security tool (see ``cloudscan_runner.plugins.scanners``).
"""
