"""
Application Layer

Pipeline orchestration and the services built on top of it.
"""
