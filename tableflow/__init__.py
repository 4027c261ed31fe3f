"""
                Tableflow

Front-of-house coordination core for restaurants: tables, orders,
kitchen fulfillment and bill settlement kept consistent across
waiter, kitchen and cashier stations.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
