"""Incremental OAI-PMH ListRecords harvesting."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
import time
from typing import Callable

from lxml import etree

from metaharvest.config import GRANULARITIES, HarvestSettings, SourceConfigError, SourceSettings
from metaharvest.harvest.errors import (
    HarvestCancelled,
    HarvestParseError,
    HarvestProtocolError,
    TempFileError,
)
from metaharvest.harvest.models import HarvestState, HarvestSummary, HarvestWindow, RawRecord, RecordStatus, state_id
from metaharvest.harvest.pretransform import XsltPreTransform, parse_page
from metaharvest.harvest.store import StateStore
from metaharvest.harvest.tempfiles import allocate_temp_path
from metaharvest.harvest.transport import HttpTransport, Transport
from metaharvest.normalize.models import RecordRejected
from metaharvest.normalize.xml import attribute, children, first_child, text_of

logger = logging.getLogger(__name__)

NO_RECORDS_MATCH = "noRecordsMatch"

DAY_FORMAT = "%Y-%m-%d"
SECOND_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

RecordSink = Callable[[RawRecord], bool]


def header_deleted(record: etree._Element) -> bool:
    header = first_child(record, "header")
    return header is not None and attribute(header, "status") == "deleted"


def _default_now() -> datetime:
    return datetime.now(timezone.utc)


class OaiPmhHarvester:
    """Harvest one source page by page, following resumption tokens.

    Each record is handed to ``record_sink``; a True return counts the record
    as changed (or deleted), False as unchanged. The last harvested date is
    written to the state store only once the final page has been consumed,
    so an aborted run is retried from the same point next time.
    """

    def __init__(
        self,
        source: str,
        settings: HarvestSettings | None,
        source_settings: SourceSettings,
        state_store: StateStore,
        transport: Transport | None = None,
        pretransform: Callable[[bytes], bytes] | None = None,
        is_deleted: Callable[[etree._Element], bool] | None = None,
        now: Callable[[], datetime] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if not source_settings.url:
            raise SourceConfigError(source, "Missing url")
        if source_settings.granularity not in GRANULARITIES:
            raise SourceConfigError(source, f"granularity must be one of {', '.join(GRANULARITIES)}")

        self._source = source
        self._settings = settings or HarvestSettings()
        self._source_settings = source_settings
        self._state_store = state_store
        self._owned_transport: HttpTransport | None = None
        if transport is None:
            transport = self._owned_transport = HttpTransport(
                source,
                max_tries=self._settings.max_tries,
                retry_wait=self._settings.retry_wait,
                timeout=self._settings.http_timeout,
            )
        self._transport = transport
        if pretransform is None and source_settings.pre_transformation is not None:
            try:
                pretransform = XsltPreTransform(source_settings.pre_transformation, source)
            except HarvestParseError as exc:
                raise SourceConfigError(source, exc.message) from exc
        self._pretransform = pretransform
        self._is_deleted = is_deleted or header_deleted
        self._now = now or _default_now
        self._cancel_event = cancel_event

    @property
    def source(self) -> str:
        return self._source

    def last_harvested_date(self) -> str | None:
        state = self._state_store.get_state(state_id(self._source))
        if state is None:
            return None
        value = state.get("value")
        return str(value) if value else None

    def format_date(self, moment: datetime) -> str:
        if self._source_settings.granularity == "second":
            return moment.astimezone(timezone.utc).strftime(SECOND_FORMAT)
        return moment.astimezone(timezone.utc).strftime(DAY_FORMAT)

    def _granular(self, datestamp: str) -> str:
        if self._source_settings.granularity == "day":
            return datestamp[:10]
        return datestamp

    def harvest(self, record_sink: RecordSink, window: HarvestWindow | None = None) -> HarvestSummary:
        try:
            return self._harvest(record_sink, window)
        finally:
            if self._owned_transport is not None:
                self._owned_transport.close()

    def _harvest(self, record_sink: RecordSink, window: HarvestWindow | None) -> HarvestSummary:
        started = time.perf_counter()
        summary = HarvestSummary(source=self._source)

        start = window.start if window is not None and window.start else self.last_harvested_date()
        end = window.end if window is not None and window.end else self.format_date(self._now())

        params = {"verb": "ListRecords", "metadataPrefix": self._source_settings.metadata_prefix}
        if start:
            params["from"] = start
        params["until"] = end
        if self._source_settings.set_spec:
            params["set"] = self._source_settings.set_spec

        logger.info("[%s] Harvesting from %s until %s", self._source, start or "the beginning", end)

        tracked: str | None = None
        token: str | None = None
        while True:
            if self._cancel_event is not None and self._cancel_event.is_set():
                raise HarvestCancelled(source=self._source)

            request = params if token is None else {"verb": "ListRecords", "resumptionToken": token}
            page = self._fetch_page(request)

            error = first_child(page, "error")
            if error is not None:
                code = attribute(error, "code") or "unknown"
                if code == NO_RECORDS_MATCH:
                    logger.info("[%s] No records matched the request", self._source)
                    break
                raise HarvestProtocolError(
                    source=self._source,
                    code=code,
                    message=f"Repository returned an error: {text_of(error) or code}",
                )

            page_max = self._process_page(page, record_sink, summary)
            summary.pages += 1
            if page_max and (tracked is None or page_max > tracked):
                tracked = page_max

            token = text_of(first_child(page, "ListRecords/resumptionToken"))
            if not token:
                break
            logger.debug("[%s] Continuing with resumption token %s", self._source, token)

        if tracked is not None:
            self._state_store.save_state(HarvestState(self._source, tracked).to_dict())
            summary.last_harvested_date = tracked
        else:
            summary.last_harvested_date = start

        summary.duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "[%s] Harvested %d updated, %d unchanged and %d deleted records",
            self._source,
            summary.changed,
            summary.unchanged,
            summary.deleted,
        )
        if summary.rejected:
            logger.warning("[%s] Rejected %d records", self._source, summary.rejected)
        return summary

    def _fetch_page(self, request: dict[str, str]) -> etree._Element:
        body = self._transport.get(self._source_settings.url, request)
        try:
            if self._pretransform is not None:
                body = self._pretransform(body)
            return parse_page(body, source=self._source)
        except HarvestParseError:
            self._dump_body(body)
            raise

    def _dump_body(self, body: bytes) -> None:
        try:
            path = allocate_temp_path(f"oai-{self._source}-", ".xml", self._settings.temp_dir)
            path.write_bytes(body)
        except (TempFileError, OSError) as exc:
            logger.error("[%s] Could not save the failed response: %s", self._source, exc)
            return
        logger.error("[%s] Failed response saved to %s", self._source, path)

    def _process_page(self, page: etree._Element, record_sink: RecordSink, summary: HarvestSummary) -> str | None:
        page_max: str | None = None
        for node in children(page, "ListRecords/record"):
            record = self._raw_record(node)
            if record is None:
                summary.rejected += 1
                continue

            try:
                changed = record_sink(record)
            except RecordRejected as exc:
                logger.debug("[%s] %s", self._source, exc)
                summary.rejected += 1
                changed = None

            if changed is not None:
                if record.deleted:
                    summary.deleted += 1
                elif changed:
                    summary.changed += 1
                else:
                    summary.unchanged += 1

            if record.datestamp:
                datestamp = self._granular(record.datestamp)
                if page_max is None or datestamp > page_max:
                    page_max = datestamp
        return page_max

    def _raw_record(self, node: etree._Element) -> RawRecord | None:
        header = first_child(node, "header")
        identifier = text_of(first_child(header, "identifier")) if header is not None else ""
        prefix = self._source_settings.id_prefix
        if prefix and identifier.startswith(prefix):
            identifier = identifier[len(prefix):]
        if not identifier:
            logger.warning("[%s] Skipping record without an identifier", self._source)
            return None

        datestamp = text_of(first_child(header, "datestamp"))
        if self._is_deleted(node):
            return RawRecord(identifier=identifier, xml_payload="", status=RecordStatus.DELETED, datestamp=datestamp)

        metadata = first_child(node, "metadata")
        payload_node = None
        if metadata is not None:
            payload_node = next((child for child in metadata if isinstance(child.tag, str)), None)
        if payload_node is None:
            logger.warning("[%s] Record %s has no metadata", self._source, identifier)
            return None

        payload = etree.tostring(payload_node, encoding="unicode")
        return RawRecord(identifier=identifier, xml_payload=payload, datestamp=datestamp)
