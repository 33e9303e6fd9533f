"""
Person-period expansion for discrete-time hazard models.

A subject followed to ``ftime = t*`` contributes one record per time
``t = 1..min(t*, horizon)``. The record at ``t = t*`` carries ``event = 1``
when the subject had the event of interest there; every other record has
``event = 0``. ``collapse_hazards`` is the inverse view: per-record hazards
back to per-subject survival curves.
"""

import logging

import numpy as np
import pandas as pd

from cvstack.config.validation import ConfigurationError
from cvstack.data.io import check_survival_columns
from cvstack.data.schema import AT_RISK_COL, EVENT_COL, ID_COL, PERSON_PERIOD_COLS, TIME_COL
from cvstack.survival.censoring import event_indicator

logger = logging.getLogger(__name__)


def _subject_ids(data: pd.DataFrame, id_col: str | None) -> np.ndarray:
    if id_col is None:
        return np.arange(len(data))
    ids = data[id_col].to_numpy()
    if pd.Series(ids).duplicated().any():
        raise ConfigurationError(f"Subject ids in '{id_col}' must be unique (one row per subject).")
    return ids


def _check_horizon(horizon: int):
    if int(horizon) != horizon or horizon < 1:
        raise ConfigurationError(f"horizon must be an integer >= 1, got {horizon}.")


def expand_person_period(
    data: pd.DataFrame,
    horizon: int,
    ftime_col: str = "ftime",
    ftype_col: str = "ftype",
    id_col: str | None = None,
    cause: int | None = None,
) -> pd.DataFrame:
    """
    Expand one-row-per-subject data to person-period records.

    Args:
        data: Subjects with covariates and survival columns (not modified)
        horizon: Last time to emit
        ftime_col: Follow-up time column (integer >= 1)
        ftype_col: Event type column (0 = censored)
        id_col: Subject id column (default: row position)
        cause: Event type of interest (default: any event)

    Returns:
        DataFrame with columns id, covariates..., t, event, at_risk
    """
    _check_horizon(horizon)
    ftime, ftype = check_survival_columns(data[ftime_col], data[ftype_col])
    ids = _subject_ids(data, id_col)

    reserved = {ftime_col, ftype_col, id_col}
    covariates = [c for c in data.columns if c not in reserved]
    clash = [c for c in covariates if c in PERSON_PERIOD_COLS]
    if clash:
        raise ConfigurationError(f"Covariate names clash with person-period columns: {clash}")

    n_records = np.minimum(ftime, int(horizon))
    subject = np.repeat(np.arange(len(data)), n_records)
    starts = np.repeat(np.cumsum(n_records) - n_records, n_records)
    t = np.arange(int(n_records.sum())) - starts + 1

    is_event = event_indicator(ftype, cause)
    event = ((t == ftime[subject]) & is_event[subject]).astype(int)

    out = data[covariates].iloc[subject].reset_index(drop=True)
    out.insert(0, ID_COL, ids[subject])
    out[TIME_COL] = t
    out[EVENT_COL] = event
    out[AT_RISK_COL] = 1

    logger.debug(
        f"Expanded {len(data)} subjects to {len(out)} person-period records "
        f"({int(event.sum())} events, horizon={horizon})"
    )
    return out


def prediction_grid(
    data: pd.DataFrame,
    horizon: int,
    id_col: str | None = None,
    exclude: tuple[str, ...] = (),
) -> pd.DataFrame:
    """Records ``t = 1..horizon`` for every subject (columns id, covariates..., t)."""
    _check_horizon(horizon)
    ids = _subject_ids(data, id_col)
    covariates = [c for c in data.columns if c != id_col and c not in exclude]

    subject = np.repeat(np.arange(len(data)), int(horizon))
    out = data[covariates].iloc[subject].reset_index(drop=True)
    out.insert(0, ID_COL, ids[subject])
    out[TIME_COL] = np.tile(np.arange(1, int(horizon) + 1), len(data))
    return out


def hazard_frame(hazards, ids, times, horizon: int) -> pd.DataFrame:
    """Pivot per-record hazards to subjects x times (columns 1..horizon)."""
    frame = pd.DataFrame({ID_COL: np.asarray(ids), TIME_COL: np.asarray(times), "h": hazards})
    if frame.duplicated([ID_COL, TIME_COL]).any():
        raise ValueError("Duplicate (id, t) pairs in hazards.")
    order = pd.unique(frame[ID_COL])
    wide = frame.pivot(index=ID_COL, columns=TIME_COL, values="h")
    wide = wide.reindex(index=order, columns=range(1, int(horizon) + 1))
    if wide.isna().any().any():
        raise ValueError("Hazards do not cover t = 1..horizon for every subject.")
    wide.index.name = ID_COL
    wide.columns.name = TIME_COL
    return wide.clip(0.0, 1.0)


def collapse_hazards(hazards, ids, times, horizon: int) -> pd.DataFrame:
    """
    Survival curves from per-record hazards.

    ``S(t) = prod_{s <= t} (1 - h(s))`` with hazards clipped to [0, 1].

    Returns:
        DataFrame indexed by subject id (first-appearance order), columns t = 1..horizon
    """
    return (1.0 - hazard_frame(hazards, ids, times, horizon)).cumprod(axis=1)
