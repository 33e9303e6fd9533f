"""
Data schema definitions and constants.

Column names used for survival data and for the derived person-period view.
"""

# ============================================================================
# Survival Columns
# ============================================================================

# Observed follow-up time (integer, >= 1)
FTIME_COL = "ftime"

# Event type: 0 = censored, >= 1 = event kind
FTYPE_COL = "ftype"

CENSORED = 0

# ============================================================================
# Person-Period Columns
# ============================================================================

# Subject identifier carried onto every person-period record
ID_COL = "id"

# Discrete time of the record (1..horizon)
TIME_COL = "t"

# 1 if the event happened at this record's time
EVENT_COL = "event"

# 1 on every emitted record (the subject is at risk at t)
AT_RISK_COL = "at_risk"

PERSON_PERIOD_COLS = [ID_COL, TIME_COL, EVENT_COL, AT_RISK_COL]

# ============================================================================
# Report Names
# ============================================================================

BLEND_NAME = "SuperLearner"
DISCRETE_NAME = "DiscreteSL"
