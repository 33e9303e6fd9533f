"""
scikit-learn version compatibility.

scikit-learn 1.8 deprecates ``penalty=`` in LogisticRegression: the penalty is
expressed through ``l1_ratio`` and ``C`` (``C=np.inf`` for no penalty).
"""

import re

import numpy as np
import sklearn


def _sklearn_version_tuple(ver: str) -> tuple[int, int, int]:
    """Parse sklearn version string (robust to rc/dev suffixes)."""
    nums = re.findall(r"\d+", ver)
    nums = (nums + ["0", "0", "0"])[:3]
    return (int(nums[0]), int(nums[1]), int(nums[2]))


SKLEARN_VER = _sklearn_version_tuple(getattr(sklearn, "__version__", "0.0.0"))


def logistic_penalty_kwargs(
    penalty: str | None, C: float = 1.0, l1_ratio: float | None = None
) -> dict:
    """
    Keyword arguments selecting a LogisticRegression penalty on any sklearn version.

    Args:
        penalty: None, "l1", "l2" or "elasticnet"
        C: Inverse regularization strength (ignored when penalty is None)
        l1_ratio: ElasticNet mixing (only for "elasticnet")

    Returns:
        Dict to unpack into LogisticRegression(...)
    """
    if penalty not in (None, "l1", "l2", "elasticnet"):
        raise ValueError(f"Unknown penalty: {penalty}")

    if SKLEARN_VER >= (1, 8, 0):
        if penalty is None:
            return {"C": np.inf}
        ratio = {"l1": 1.0, "l2": 0.0}.get(penalty, 0.5 if l1_ratio is None else l1_ratio)
        return {"C": C, "l1_ratio": ratio}

    if penalty is None:
        return {"penalty": None}
    kwargs = {"penalty": penalty, "C": C}
    if penalty == "elasticnet":
        kwargs["l1_ratio"] = 0.5 if l1_ratio is None else l1_ratio
    return kwargs
