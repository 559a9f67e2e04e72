"""Key indexing and range decomposition engine.

This package maps grid keys to a one-dimensional index space, splits
key bounds queries into index ranges, and merges those ranges into the
minimal set of backing store scans.
"""

from index.hilbert import HilbertMethod, HilbertSpatialKeyIndex
from index.key_index import KeyIndex, KeyIndexMethod, key_index_from_payload
from index.merge_queue import MergeQueue, merge_ranges
from index.row_major import RowMajorMethod, RowMajorSpatialKeyIndex
from index.z_curve import (
    ZCurveMethod,
    ZCurveSpaceTimeMethod,
    ZSpaceTimeKeyIndex,
    ZSpatialKeyIndex,
)

__all__ = [
    "HilbertMethod",
    "HilbertSpatialKeyIndex",
    "KeyIndex",
    "KeyIndexMethod",
    "MergeQueue",
    "RowMajorMethod",
    "RowMajorSpatialKeyIndex",
    "ZCurveMethod",
    "ZCurveSpaceTimeMethod",
    "ZSpaceTimeKeyIndex",
    "ZSpatialKeyIndex",
    "key_index_from_payload",
    "merge_ranges",
]
