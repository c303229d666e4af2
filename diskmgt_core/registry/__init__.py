"""
Drive Registry - Persistent drive identities and their live status.

This package provides:
- DriveRecord (what we remember about a drive)
- Backends (where the registry document lives)
- RegistryStore (CRUD)
- Reconciler (live scan vs registry)
"""

from .records import DriveRecord
from .backend import JsonFileBackend, MemoryBackend, StoreBackend
from .store import RegistryStore
from .reconcile import ReconciledDrive, ReconcileResult, Reconciler, reconcile
from .search import search_records

__all__ = [
    'DriveRecord',
    'JsonFileBackend',
    'MemoryBackend',
    'StoreBackend',
    'RegistryStore',
    'ReconciledDrive',
    'ReconcileResult',
    'Reconciler',
    'reconcile',
    'search_records',
]
