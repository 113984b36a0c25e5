"""SQL Exporter - runs SQL queries on a schedule and exposes the results as Prometheus metrics"""
__version__ = "0.5.0"
