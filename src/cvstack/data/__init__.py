"""Data handling: folds, schema constants and table I/O."""

from cvstack.data.folds import FoldAssignment, make_folds
from cvstack.data.io import (
    DesignData,
    align_covariates,
    as_covariate_frame,
    check_survival_columns,
    encode_covariates,
    extract_design,
    read_table,
    resolve_covariates,
)
from cvstack.data.schema import (
    AT_RISK_COL,
    BLEND_NAME,
    CENSORED,
    DISCRETE_NAME,
    EVENT_COL,
    FTIME_COL,
    FTYPE_COL,
    ID_COL,
    TIME_COL,
)

__all__ = [
    "FoldAssignment",
    "make_folds",
    "DesignData",
    "align_covariates",
    "as_covariate_frame",
    "check_survival_columns",
    "encode_covariates",
    "extract_design",
    "read_table",
    "resolve_covariates",
    "AT_RISK_COL",
    "BLEND_NAME",
    "CENSORED",
    "DISCRETE_NAME",
    "EVENT_COL",
    "FTIME_COL",
    "FTYPE_COL",
    "ID_COL",
    "TIME_COL",
]
