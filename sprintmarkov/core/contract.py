# sprintmarkov/core/contract.py
"""
SprintMarkov Decision Contract

Locked tolerances and thresholds that decide how iteration metrics map to
states, how matrices are judged, and how forecast steps are labelled.

If you change any constants in here, bump SPRINTMARKOV_DECISION_VERSION.
"""

SPRINTMARKOV_DECISION_VERSION = "0.1.0"

# Float tolerances
EQ_TOLERANCE = 0.001          # rubric EQ comparisons
STOCHASTIC_TOLERANCE = 0.001  # row sums
CELL_TOLERANCE = 0.001        # per-cell equality when comparing matrices

# Matrix comparison: a cell moving more than 10 percentage points is material
MATERIAL_DIFFERENCE = 0.1

# Step-based confidence heuristic (qualitative, not a confidence interval)
HIGH_CONFIDENCE_MAX_STEP = 2
MEDIUM_CONFIDENCE_MAX_STEP = 5

# Model defaults
DEFAULT_WINDOW_SIZE = 10
DEFAULT_STEPS = 6
DEFAULT_METRIC = "velocity"

# Repository housekeeping
SNAPSHOT_KEEP_COUNT = 50

CONFIDENCE_NOTE = (
    "Confidence labels depend only on how far ahead a step is "
    "(1-2 High, 3-5 Medium, 6+ Low). They are a qualitative heuristic, "
    "not a statistical confidence interval."
)
