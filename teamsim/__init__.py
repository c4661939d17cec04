# teamsim/__init__.py
"""Agent-based building blocks for the team throughput simulator."""
