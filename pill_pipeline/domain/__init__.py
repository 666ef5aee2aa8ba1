"""
Domain Layer

Entities, value objects, ports and rules of pill identification.
Has no dependencies on infrastructure.
"""
