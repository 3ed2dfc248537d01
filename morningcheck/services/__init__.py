"""
MorningCheck Services.

Pure domain logic: normalization, statistics, streaks and lifecycles.
"""
