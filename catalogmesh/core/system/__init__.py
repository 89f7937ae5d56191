"""
Background services: the federation scheduler and Prometheus metrics.
"""
