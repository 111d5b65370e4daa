"""
Monitoring package.

Currently provides the PerformanceMonitor, which samples every workspace
operation and keeps bounded error history.
"""
