"""Viewer Fleet Scheduler (vsched).

Keeps one or more viewer instances (e.g. Kibana) running per upstream
data-cluster endpoint by matching orchestrator resource offers against the
required instance counts:
 - requirement ledger (desired vs. running per target)
 - offer matching and launch decisions
 - host port allocation for instances on the host network
 - task lifecycle reconciliation from status updates
"""
