"""
Coordinators package for the signal relay.

Components:
- Dispatcher: Signal and announcement fan-out to destinations
- HealthMonitor: Status reporting
"""

from signal_relay.coordinators.dispatcher import (
    Dispatcher,
    DeliveryResult,
    DeliveryState,
)
from signal_relay.coordinators.health_monitor import HealthMonitor, RelayStats

__all__ = [
    'Dispatcher',
    'DeliveryResult',
    'DeliveryState',
    'HealthMonitor',
    'RelayStats',
]
