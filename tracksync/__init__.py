"""
tracksync - Correios tracking synchronization engine.
Keeps local order shipping statuses in step with the carrier's tracking API.
"""

__version__ = "1.0.0"
__author__ = "tracksync"
