"""
Off-chain protocol math for a SOL-backed stablecoin and levercoin pair.
"""

__version__ = "0.1.0"
