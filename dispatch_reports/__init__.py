"""
dispatch_reports - template-driven EOD and PAX report synthesis.

Turns an uploaded dispatch sheet (one row per tour) into a formatted
End-Of-Day report and a monthly passenger ledger, fresh or by appending to a
previously generated workbook.
"""

__version__ = "1.0.0"

from .append import AppendState, SuccessiveAppendController
from .config import DEFAULT_CONFIG, EngineConfig, ReportLayout, load_config
from .errors import (
    DocumentStructureError,
    NoRecordsError,
    ReplicationError,
    ReportBusyError,
    ReportEngineError,
    ReportWarning,
    WarningLog,
)
from .extractor import RecordExtractor, merge_by_name, records_frame
from .locking import KeyedLockRegistry
from .models import (
    ExtractionResult,
    GenerationResult,
    MergeRegion,
    ReportHeader,
    TemplateSection,
    TotalsAccumulator,
    TourRecord,
)
from .pipeline import ReportGenerator
from .sections import SectionReplicator, TemplateSectionStore
from .substitution import PlaceholderSubstitutionEngine
from .tab_router import DateTabRouter, TabRouteResult, parse_report_date
from .totals import TotalsAggregator

__all__ = [
    "AppendState",
    "DEFAULT_CONFIG",
    "DateTabRouter",
    "DocumentStructureError",
    "EngineConfig",
    "ExtractionResult",
    "GenerationResult",
    "KeyedLockRegistry",
    "MergeRegion",
    "NoRecordsError",
    "PlaceholderSubstitutionEngine",
    "RecordExtractor",
    "ReplicationError",
    "ReportBusyError",
    "ReportEngineError",
    "ReportGenerator",
    "ReportHeader",
    "ReportLayout",
    "ReportWarning",
    "SectionReplicator",
    "SuccessiveAppendController",
    "TabRouteResult",
    "TemplateSection",
    "TemplateSectionStore",
    "TotalsAccumulator",
    "TotalsAggregator",
    "TourRecord",
    "WarningLog",
    "load_config",
    "merge_by_name",
    "parse_report_date",
    "records_frame",
]
