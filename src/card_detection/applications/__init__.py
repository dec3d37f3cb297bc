"""
Applications module for the Card Detection System.

Provides the ``card-detect`` command-line tool.
"""
