"""
Test fixtures for the reporting tests.
"""

from tests.fixtures.sample_claims import FIXED_NOW, build_account, build_claim

__all__ = ["FIXED_NOW", "build_account", "build_claim"]
