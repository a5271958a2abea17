"""Constants for tasklens.

This module centralizes the default numbers used by scoring, thresholding and
result budgets. Settings override every one of them.
"""


# Scoring coefficients
RELEVANCE_COEFFICIENT = 20.0
DUE_DATE_COEFFICIENT = 4.0
PRIORITY_COEFFICIENT = 1.0

# Weight of literal (core) keyword matches on top of expanded matches
RELEVANCE_CORE_WEIGHT = 0.2

# Due-date tiers: overdue, within 7 days, within a month, later, no date
DUE_DATE_OVERDUE = 1.5
DUE_DATE_WITHIN_7_DAYS = 1.0
DUE_DATE_WITHIN_MONTH = 0.5
DUE_DATE_LATER = 0.2
DUE_DATE_NONE = 0.1

DUE_SOON_DAYS = 7
DUE_MONTH_DAYS = 30

# Priority buckets: P1..P4, none
PRIORITY_P1 = 1.0
PRIORITY_P2 = 0.75
PRIORITY_P3 = 0.5
PRIORITY_P4 = 0.2
PRIORITY_NONE = 0.1

# Adaptive quality threshold: (minimum keyword count, fraction of max score)
ADAPTIVE_THRESHOLD_BUCKETS = (
    (20, 0.10),
    (4, 0.16),
    (2, 0.26),
)
ADAPTIVE_THRESHOLD_FLOOR = 0.32

# Result budgets
MAX_DIRECT_RESULTS = 50
MAX_TASKS_FOR_AI = 30
MAX_RECOMMENDATIONS = 20

# Keyword expansion
EXPANSIONS_PER_LANGUAGE = 5
DEFAULT_QUERY_LANGUAGES = ("English", "中文")
