# M-Suite Dev Portal - local service control plane

__version__ = "1.0.0"
