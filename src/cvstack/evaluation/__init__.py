"""Nested cross-validation of the ensemble."""

from cvstack.evaluation.nested_cv import NestedCVResult, nested_cv, save_nested_cv_results

__all__ = ["NestedCVResult", "nested_cv", "save_nested_cv_results"]
