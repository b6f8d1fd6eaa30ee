"""
Runtime package for background processes.

Architecture:
- Runs async processes against the store and routes actions to them
- Supervises root processes and settles waits they leave behind
"""
