"""
Application module initialization.
"""
from .signal import TrafficSignal, new_signal, green_duration
from .controller import IntersectionController
from .builder import IntersectionBuilder
