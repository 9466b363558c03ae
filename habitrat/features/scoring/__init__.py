"""
Metric library

Pure functions over an in-memory log window:
- Consistency score and 7-day trend
- Current streak and streak-fragility risk
- Momentum (7/14/30-day rates)
- Time-of-day affinity and failure reasons
- Pairwise lift and keystone habits
- Burnout prediction
- Coaching insights

Every function takes an explicit `as_of` day; none reads the clock or does I/O.
"""
