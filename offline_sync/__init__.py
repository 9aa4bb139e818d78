"""
                Food Truck Offline Sync

Offline-first synchronization engine for the food truck customer app:
a durable priority queue of pending mutations, a drain loop that replays
them with exponential backoff, and explicit conflict arbitration.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
