"""Toy Monte Carlo studies of counting statistics, estimation and goodness of fit."""

__version__ = "0.1.0"