"""Survival extensions: censoring weights, person-period data, hazard and IPCW ensembles."""

from cvstack.survival.censoring import (
    CensoringTable,
    cross_fit_ipcw_weights,
    event_indicator,
    fit_censoring_survival,
    ipcw_weights,
)
from cvstack.survival.hazard import (
    PerTimeHazardEnsemble,
    PooledHazardEnsemble,
    fit_hazard_ensemble,
)
from cvstack.survival.ipcw import IPCWEnsemble, fit_ipcw_ensemble, ipcw_family
from cvstack.survival.person_period import (
    collapse_hazards,
    expand_person_period,
    hazard_frame,
    prediction_grid,
)

__all__ = [
    "CensoringTable",
    "cross_fit_ipcw_weights",
    "event_indicator",
    "fit_censoring_survival",
    "ipcw_weights",
    "PerTimeHazardEnsemble",
    "PooledHazardEnsemble",
    "fit_hazard_ensemble",
    "IPCWEnsemble",
    "fit_ipcw_ensemble",
    "ipcw_family",
    "collapse_hazards",
    "expand_person_period",
    "hazard_frame",
    "prediction_grid",
]
