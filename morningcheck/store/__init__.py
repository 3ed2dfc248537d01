"""
Client State Store

Immutable AppState, pure reducer and a persisted, injectable Store.
"""

from morningcheck.store.state import AppState
from morningcheck.store.actions import *
from morningcheck.store.reducer import reduce
from morningcheck.store.snapshot_repository import SnapshotRepository
from morningcheck.store.store import Store
