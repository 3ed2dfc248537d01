"""
MorningCheck

Daily condition check-ins for small teams: team statistics, streaks and
the membership/invitation lifecycle, mirrored in a persisted client store.
"""

__version__ = "0.1.0"
