"""Feature screening."""

from cvstack.features.screening import (
    AllScreen,
    ColumnScreen,
    CorrelationScreen,
    LassoScreen,
    RandomForestScreen,
    Screen,
    ScreeningError,
    UnivariateScreen,
)

__all__ = [
    "AllScreen",
    "ColumnScreen",
    "CorrelationScreen",
    "LassoScreen",
    "RandomForestScreen",
    "Screen",
    "ScreeningError",
    "UnivariateScreen",
]
