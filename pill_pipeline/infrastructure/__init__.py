"""
Infrastructure Layer

Adapters implementing the domain ports against external capabilities.
"""
