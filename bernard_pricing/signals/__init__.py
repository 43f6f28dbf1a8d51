"""Occupancy and pace signal providers."""
from .provider import (
    OccupancySignals,
    SignalProvider,
    StaticSignalProvider,
    fetch_signals,
    lead_window_for,
    neutral_signals,
)
from .store_provider import StoreSignalProvider
