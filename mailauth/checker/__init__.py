"""
Checker package for the DKIM/DMARC publication checker.

Provides the multi-provider DNS resolver, the DKIM and DMARC validators,
the cross-provider consistency analyzer and the orchestrating engine.
"""
