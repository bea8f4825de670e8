"""
Switchboard — multi-provider LLM request routing.
"""

__version__ = "0.1.0"
