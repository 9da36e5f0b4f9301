"""
Formatting helpers and structured lifecycle logging.
"""
