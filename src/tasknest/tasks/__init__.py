"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskDraft, TaskStats, StoreResult, ...)
- task_codec.py: conversion to/from local JSON records and Firestore documents
- local_store.py: SQLite key-value store holding the on-device task list
- remote_store.py: Firestore-backed store partitioned by caller id
- backends.py: per-call choice between the two stores
- repository.py: the sync facade every caller goes through
- stats.py: derived counters, streak and analytics
- task_api.py: small high-level helpers used by the rest of the app
"""
