"""LabSwap: exchange negotiation service for the lab-equipment marketplace."""

__version__ = "1.0.0"
