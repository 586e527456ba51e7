"""OAI-PMH harvesting: transport, paging, state and record persistence."""

from .controller import OaiPmhHarvester, header_deleted
from .errors import (
    HarvestCancelled,
    HarvestParseError,
    HarvestProtocolError,
    HarvestRequestError,
    SourceConfigError,
    TempFileError,
)
from .models import HarvestState, HarvestSummary, HarvestWindow, RawRecord, RecordStatus, state_id
from .pretransform import XsltPreTransform, parse_page
from .runner import SourceJob, harvest_sources, run_harvests
from .sink import NormalizingSink
from .store import RecordStore, SqliteStore, StateStore, StoredRecord
from .tempfiles import allocate_temp_path
from .transport import HttpTransport, Transport

__all__ = [
    "HarvestCancelled",
    "HarvestParseError",
    "HarvestProtocolError",
    "HarvestRequestError",
    "HarvestState",
    "HarvestSummary",
    "HarvestWindow",
    "HttpTransport",
    "NormalizingSink",
    "OaiPmhHarvester",
    "RawRecord",
    "RecordStatus",
    "RecordStore",
    "SourceConfigError",
    "SourceJob",
    "SqliteStore",
    "StateStore",
    "StoredRecord",
    "TempFileError",
    "Transport",
    "XsltPreTransform",
    "allocate_temp_path",
    "harvest_sources",
    "header_deleted",
    "parse_page",
    "run_harvests",
    "state_id",
]
