"""Burnup reconstruction and completion forecasting.

This package provides:
- Point-in-time reconstruction of work items from their change logs
- Daily snapshot series aggregated per status
- Velocity estimation, trend projection and Monte Carlo confidence bands

Items and configuration are supplied by the caller; nothing here fetches
data or renders charts.
"""
