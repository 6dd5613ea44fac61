# AGPL-3.0 License

from pr_gate.tools.pr_gate import PRGate, Publisher

__all__ = [
    "PRGate",
    "Publisher",
]
