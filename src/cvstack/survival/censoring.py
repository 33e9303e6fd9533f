"""
Censoring survival estimation and inverse-probability-of-censoring weights.

The censoring process is estimated with a Kaplan-Meier curve in which
censoring (``ftype == 0``) is the event of interest. Lookups are shifted by
one time unit: ``CensoringTable.survival(t)`` returns ``G(t - 1)``, the
probability of remaining uncensored through the end of ``t - 1`` and
therefore of being observed at ``t``.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from cvstack.config.validation import ConfigurationError
from cvstack.data.folds import FoldAssignment
from cvstack.data.io import check_survival_columns
from cvstack.data.schema import CENSORED

logger = logging.getLogger(__name__)

_ALL = "__all__"


def event_indicator(ftype: np.ndarray, cause: int | None = None) -> np.ndarray:
    """True where the row had the event of interest (any event if ``cause`` is None)."""
    ftype = np.asarray(ftype)
    if cause is None:
        return ftype != CENSORED
    return ftype == cause


def _km_censoring(ftime: np.ndarray, ftype: np.ndarray, max_time: int) -> np.ndarray:
    """KM survival of the censoring process at t = 0..max_time (index = time)."""
    values = np.ones(max_time + 1)
    censored = ftype == CENSORED
    for t in range(1, max_time + 1):
        n_t = np.sum(ftime >= t)
        if n_t == 0:
            values[t] = values[t - 1]
            continue
        d_t = np.sum((ftime == t) & censored)
        values[t] = values[t - 1] * (1.0 - d_t / n_t)
    return values


@dataclass(frozen=True)
class CensoringTable:
    """Censoring survival ``G(t)`` per stratum, tabulated at t = 0..max_time.

    Attributes:
        values: Mapping stratum -> array of G at t = 0..max_time
        max_time: Last tabulated time
        stratified: False when a single unstratified curve was fitted
    """

    values: dict
    max_time: int
    stratified: bool = False

    def _curve(self, stratum) -> np.ndarray:
        try:
            return self.values[stratum]
        except KeyError as e:
            raise ConfigurationError(
                f"Unknown censoring stratum {stratum!r}. Known: {list(self.values)}"
            ) from e

    def survival(self, t, strata=None) -> np.ndarray:
        """
        Shifted censoring survival ``G(t - 1)`` at each ``t``.

        Times past ``max_time`` carry the last tabulated value forward.

        Args:
            t: Integer times (scalar or array)
            strata: Stratum per time (required when the table is stratified)

        Returns:
            Array of probabilities, same length as ``t``
        """
        t = np.atleast_1d(np.asarray(t, dtype=int))
        idx = np.clip(t - 1, 0, self.max_time)

        if not self.stratified:
            return self._curve(_ALL)[idx]

        if strata is None:
            raise ConfigurationError("Censoring table is stratified; strata must be given.")
        strata = np.atleast_1d(np.asarray(strata))
        if strata.shape != t.shape:
            raise ConfigurationError(f"strata has shape {strata.shape}, expected {t.shape}.")

        out = np.empty(len(t), dtype=float)
        for stratum in pd.unique(strata):
            mask = strata == stratum
            out[mask] = self._curve(stratum)[idx[mask]]
        return out

    def to_frame(self) -> pd.DataFrame:
        """Long table (stratum, time, G) of the unshifted curves."""
        rows = [
            {"stratum": stratum, "time": t, "G": float(g)}
            for stratum, curve in self.values.items()
            for t, g in enumerate(curve)
        ]
        return pd.DataFrame(rows)


def fit_censoring_survival(
    ftime, ftype, strata=None, max_time: int | None = None
) -> CensoringTable:
    """
    Fit Kaplan-Meier curves of the censoring process.

    At each integer time ``t`` the curve is multiplied by ``1 - d_t / n_t``
    with ``d_t`` the censorings at ``t`` and ``n_t`` the units with
    ``ftime >= t``. Times with nobody at risk carry the previous value.

    Args:
        ftime: Integer follow-up times (>= 1)
        ftype: Event types (0 = censored)
        strata: Optional stratum per row; one curve per stratum
        max_time: Last time to tabulate (default: max ftime)

    Returns:
        CensoringTable
    """
    ftime, ftype = check_survival_columns(ftime, ftype)
    max_time = int(ftime.max()) if max_time is None else int(max_time)

    if strata is None:
        values = {_ALL: _km_censoring(ftime, ftype, max_time)}
        logger.debug(f"Censoring KM on {len(ftime)} rows: G({max_time})={values[_ALL][-1]:.4f}")
        return CensoringTable(values=values, max_time=max_time, stratified=False)

    strata = np.asarray(strata)
    if strata.shape != ftime.shape:
        raise ConfigurationError(f"strata has shape {strata.shape}, expected {ftime.shape}.")
    values = {}
    for stratum in pd.unique(strata):
        mask = strata == stratum
        values[stratum] = _km_censoring(ftime[mask], ftype[mask], max_time)
    logger.debug(f"Censoring KM fitted for {len(values)} strata")
    return CensoringTable(values=values, max_time=max_time, stratified=True)


def ipcw_weights(
    ftime,
    ftype,
    horizon: int,
    table: CensoringTable,
    strata=None,
    variant: str = "B",
    cause: int | None = None,
) -> np.ndarray:
    """
    Inverse-probability-of-censoring weights for the risk at ``horizon``.

    Variant A: ``1(event, ftime <= horizon) / G(ftime)``.
    Variant B: ``[1(observed by horizon) + 1(ftime > horizon)] / G(min(ftime, horizon))``
    where "observed by horizon" means any event at ``ftime <= horizon``; a
    competing event before the horizon is an observed non-event of ``cause``.

    ``G`` is the shifted lookup of ``table``. Units censored before the
    horizon get weight 0 in both variants.

    Raises:
        ConfigurationError: Unknown variant, or an observed unit with G = 0
    """
    if variant not in ("A", "B"):
        raise ConfigurationError(f"Unknown IPCW variant: {variant!r} (expected 'A' or 'B')")
    ftime, ftype = check_survival_columns(ftime, ftype)

    if variant == "A":
        numerator = (event_indicator(ftype, cause) & (ftime <= horizon)).astype(float)
        g = table.survival(ftime, strata)
    else:
        observed = (ftype != CENSORED) & (ftime <= horizon)
        numerator = (observed | (ftime > horizon)).astype(float)
        g = table.survival(np.minimum(ftime, horizon), strata)

    bad = (numerator > 0) & (g <= 0)
    if bad.any():
        raise ConfigurationError(
            f"Censoring survival is 0 for {int(bad.sum())} observed units; "
            "IPCW weights are undefined."
        )
    return np.divide(numerator, g, out=np.zeros_like(numerator), where=numerator > 0)


def cross_fit_ipcw_weights(
    ftime,
    ftype,
    horizon: int,
    folds: FoldAssignment,
    strata=None,
    variant: str = "B",
    cause: int | None = None,
) -> np.ndarray:
    """
    IPCW weights where each fold's weights come from a censoring curve fitted
    on the other folds only.
    """
    ftime, ftype = check_survival_columns(ftime, ftype)
    if folds.n_samples != len(ftime):
        raise ConfigurationError(
            f"Fold assignment covers {folds.n_samples} rows, expected {len(ftime)}."
        )
    strata = None if strata is None else np.asarray(strata)
    max_time = int(ftime.max())

    weights = np.zeros(len(ftime), dtype=float)
    for train_idx, valid_idx in folds.split():
        table = fit_censoring_survival(
            ftime[train_idx],
            ftype[train_idx],
            None if strata is None else strata[train_idx],
            max_time=max_time,
        )
        weights[valid_idx] = ipcw_weights(
            ftime[valid_idx],
            ftype[valid_idx],
            horizon,
            table,
            None if strata is None else strata[valid_idx],
            variant=variant,
            cause=cause,
        )
    return weights
