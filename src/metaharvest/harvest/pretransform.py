"""Tolerant page parsing and optional per-source XSLT pre-transformation."""

from __future__ import annotations

import logging
from pathlib import Path

from lxml import etree

from metaharvest.harvest.errors import HarvestParseError
from metaharvest.normalize.xml import secure_parser

logger = logging.getLogger(__name__)


def _describe(exc: etree.XMLSyntaxError) -> str:
    errors = [
        f"Error {entry.type} at {entry.line}:{entry.column}: {entry.message}"
        for entry in exc.error_log
    ]
    return "; ".join(errors) or str(exc)


def parse_page(body: bytes, *, source: str) -> etree._Element:
    """Parse a page body, retrying once with undecodable bytes dropped."""

    try:
        return etree.fromstring(body, parser=secure_parser())
    except etree.XMLSyntaxError:
        logger.warning("[%s] Invalid XML received, trying encoding fix...", source)

    cleaned = body.decode("utf-8", errors="ignore").encode("utf-8")
    try:
        return etree.fromstring(cleaned, parser=secure_parser())
    except etree.XMLSyntaxError as exc:
        raise HarvestParseError(source=source, stage="parse", message=f"Could not parse XML: {_describe(exc)}") from exc


class XsltPreTransform:
    """Apply a stylesheet to every page before records are extracted.

    The stylesheet receives the source id as the ``source_id`` parameter.
    """

    def __init__(self, stylesheet: str | Path, source: str) -> None:
        self._source = source
        self._path = Path(stylesheet)
        try:
            document = etree.parse(str(self._path), parser=secure_parser())
            self._transform = etree.XSLT(document)
        except (OSError, etree.XMLSyntaxError, etree.XSLTParseError) as exc:
            raise HarvestParseError(
                source=source,
                stage="pretransform",
                message=f"Cannot load pre-transformation {self._path}: {exc}",
            ) from exc

    def __call__(self, body: bytes) -> bytes:
        page = parse_page(body, source=self._source)
        try:
            result = self._transform(page, source_id=etree.XSLT.strparam(self._source))
        except etree.XSLTApplyError as exc:
            raise HarvestParseError(
                source=self._source,
                stage="pretransform",
                message=f"Pre-transformation failed: {exc}",
            ) from exc
        if result.getroot() is None:
            raise HarvestParseError(
                source=self._source,
                stage="pretransform",
                message="Pre-transformation produced an empty document",
            )
        return etree.tostring(result, encoding="utf-8")
