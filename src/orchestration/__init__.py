"""
Orchestration Layer - Application coordination and workflow management.

This layer routes inbound triggers to the order flows and wires the
collaborators together.
"""

from .config import ApplicationConfig
from .dispatcher import Flow, OrderDispatcher, Route, route
from .orchestrator import ApplicationOrchestrator, create_orchestrator, setup_logging
from .suspension_monitor import SuspendedOrder, SuspensionMonitor

__all__ = [
    "ApplicationConfig",
    "Flow",
    "OrderDispatcher",
    "Route",
    "route",
    "ApplicationOrchestrator",
    "create_orchestrator",
    "setup_logging",
    "SuspendedOrder",
    "SuspensionMonitor",
]
