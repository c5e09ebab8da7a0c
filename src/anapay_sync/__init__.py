"""ANA Pay to PocketSmith transaction synchronizer"""

__version__ = "0.1.0"
