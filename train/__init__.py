"""Release train coordinator for multi-repository Maven fleets."""

__version__ = "0.3.0"
