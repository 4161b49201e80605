"""gapwise: reconcile coverage evidence and derive test gaps."""

__version__ = "0.1.0"
