"""
motionbridge - rule-driven transformation of face tracking data into avatar
parameters.
"""

__version__ = "0.1.0"
