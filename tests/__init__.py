"""
Test suite for the claims reporting service.
"""
