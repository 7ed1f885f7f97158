"""
Prepper - Persistence and curriculum resolution core for a topic-based
interview-prep curriculum viewer.
"""

__version__ = "0.1.0"
