"""
Services Layer for the Claims Reporting System.

`readers` holds the read ports over claims, accounts and audit entries with
their SQL and in-memory implementations; `reporting` composes reports from
them.
"""
