# AGPL-3.0 License

"""
PR-Gate: rule orchestration for pre-merge gating of pull requests.
"""

__version__ = "0.1.0"
