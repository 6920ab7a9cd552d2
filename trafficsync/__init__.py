"""
trafficsync - coordinated traffic signal simulation.
"""
__version__ = "0.1.0"
