"""Admission Portal - application form client"""

__version__ = "1.0.0"
