"""PRSA/HRV stress detection from heart-rate samples."""

__version__ = "0.1.0"
