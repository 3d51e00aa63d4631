"""Record engine for autodata.

Components:
- SourceMerger: per-field precedence merge of provider results
- ValuationNormalizer: canonical {private, retail, trade} price triple
- text: canonical colour, fuel type and transmission spellings
"""

from autodata.engine.merger import SourceMerger
from autodata.engine.valuation import EstimatedValue, ValuationNormalizer, usable_price

__all__ = [
    "SourceMerger",
    "ValuationNormalizer",
    "EstimatedValue",
    "usable_price",
]
