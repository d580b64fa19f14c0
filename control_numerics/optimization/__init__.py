"""Linear programming."""

from .linprog import LinprogResult, LinprogStatus, Objective, linprog

__all__ = ["LinprogResult", "LinprogStatus", "Objective", "linprog"]
