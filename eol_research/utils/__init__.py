"""Utils package initialization."""
from eol_research.utils.logger import get_logger, LayerLogger, set_trace_id, get_trace_id
from eol_research.utils.dates import DateNormalizer, DateToken, DateWindow, add_years, normalize_date
from eol_research.utils.variants import (
    compile_variant_pattern,
    generate_variants,
    strip_refurbished_suffix,
    strip_variant_suffix,
)

__all__ = [
    "get_logger",
    "LayerLogger",
    "set_trace_id",
    "get_trace_id",
    "DateNormalizer",
    "DateToken",
    "DateWindow",
    "add_years",
    "normalize_date",
    "compile_variant_pattern",
    "generate_variants",
    "strip_refurbished_suffix",
    "strip_variant_suffix",
]
