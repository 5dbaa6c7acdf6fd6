"""Startup reconciliation gate."""

from skillforge.core.startup.gate import StartupGate, build_reconciler, run_startup_reconciliation

__all__ = ["StartupGate", "build_reconciler", "run_startup_reconciliation"]
