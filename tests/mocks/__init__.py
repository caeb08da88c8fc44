"""
Mock objects for testing the Signal Relay.
"""

from tests.mocks.mock_row_store import MockRowStore
from tests.mocks.mock_destinations import MockDestination

__all__ = ['MockRowStore', 'MockDestination']
