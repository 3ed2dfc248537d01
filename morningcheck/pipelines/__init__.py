"""
MorningCheck Pipelines.

Orchestration functions: validate, call the persistence service,
re-sync and dispatch to the store.
"""

from morningcheck.pipelines.auth import *
from morningcheck.pipelines.project import *
from morningcheck.pipelines.membership import *
from morningcheck.pipelines.checkin import *
