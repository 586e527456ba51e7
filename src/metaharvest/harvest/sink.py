"""Record sink that normalizes harvested records and persists them."""

from __future__ import annotations

import logging

from metaharvest.harvest.models import RawRecord
from metaharvest.harvest.store import RecordStore
from metaharvest.normalize.base import RecordNormalizer
from metaharvest.normalize.models import ParsedRecord, RecordRejected

logger = logging.getLogger(__name__)


class NormalizingSink:
    """Callable sink for ``OaiPmhHarvester.harvest``.

    Active records are parsed, normalized and upserted together with their
    canonical fields; deleted records are flagged in the store. Returns True
    when the store changed. ``RecordRejected`` is logged and re-raised so the
    harvester counts it.
    """

    def __init__(self, source: str, normalizer: RecordNormalizer, store: RecordStore) -> None:
        self._source = source
        self._normalizer = normalizer
        self._store = store
        self.rejected = 0

    @property
    def record_format(self) -> str:
        return self._normalizer.profile.name

    def __call__(self, record: RawRecord) -> bool:
        if record.deleted:
            return self._store.mark_deleted(
                source_id=self._source,
                record_id=record.identifier,
                datestamp=record.datestamp,
            )

        try:
            with ParsedRecord.from_xml(
                record.xml_payload,
                source_id=self._source,
                record_id=record.identifier,
            ) as parsed:
                fields = self._normalizer.normalize(parsed)
                if parsed.warnings:
                    logger.warning("[%s] Record %s: %s", self._source, record.identifier, "; ".join(parsed.warnings))
        except RecordRejected as exc:
            self.rejected += 1
            logger.warning("[%s] Rejected record %s: %s", self._source, record.identifier, exc.message)
            raise

        return self._store.upsert_record(
            source_id=self._source,
            record_id=record.identifier,
            record_format=self.record_format,
            payload=record.xml_payload,
            document=fields.to_dict(),
            datestamp=record.datestamp,
        )
