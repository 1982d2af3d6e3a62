"""Gross-to-net payroll calculation engine and run orchestrator."""

__version__ = "0.1.0"
