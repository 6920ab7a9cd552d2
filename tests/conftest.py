import pytest
from unittest.mock import MagicMock
from trafficsync.common.metrics import MetricsCollector
from trafficsync.control.application import IntersectionController, new_signal
from trafficsync.control.infrastructure import VirtualScheduler

@pytest.fixture
def metrics():
    return MetricsCollector()

@pytest.fixture
def scheduler(metrics):
    scheduler = VirtualScheduler(metrics_collector=metrics)
    yield scheduler
    scheduler.shutdown()

@pytest.fixture
def controller(scheduler, metrics):
    return IntersectionController(scheduler, metrics_collector=metrics)

@pytest.fixture
def network():
    """Stands in for the controller: records deliveries, wake-ups and timers."""
    return MagicMock()

@pytest.fixture
def vehicle_signal():
    return new_signal("vehicle-1", True)

@pytest.fixture
def pedestrian_signal():
    return new_signal("pedestrian-1", False)

@pytest.fixture
def build_intersection(controller):
    """Registers and connects the given signals, returns the controller."""
    def _build(*signals):
        for signal in signals:
            controller.register(signal)
        controller.connect_all()
        return controller
    return _build
