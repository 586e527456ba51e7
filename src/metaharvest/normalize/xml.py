"""Namespace-agnostic lxml lookups used by the schema extractors."""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable

from lxml import etree

from metaharvest.normalize.text import normalize_whitespace


def secure_parser(*, recover: bool = False) -> etree.XMLParser:
    """Parser that never touches the network or expands external entities."""

    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=True,
        remove_blank_text=False,
        recover=recover,
    )


@lru_cache(maxsize=512)
def _compile(path: str) -> etree.XPath:
    steps = [step for step in path.split("/") if step]
    if not steps:
        raise ValueError("XPath must name at least one element")
    expression = "." + "".join(f"/*[local-name()='{step}']" for step in steps)
    return etree.XPath(expression)


def children(node: etree._Element | None, path: str) -> list[etree._Element]:
    """Return elements reached by a slash-separated path of local names."""

    if node is None:
        return []
    return list(_compile(path)(node))


def first_child(node: etree._Element | None, path: str) -> etree._Element | None:
    found = children(node, path)
    return found[0] if found else None


def text_of(node: object) -> str:
    if hasattr(node, "itertext"):
        return normalize_whitespace(" ".join(node.itertext()))  # type: ignore[union-attr]
    if node is None:
        return ""
    return normalize_whitespace(str(node))


def first_text(nodes: Iterable[object]) -> str | None:
    for node in nodes:
        text = text_of(node)
        if text:
            return text
    return None


def texts(node: etree._Element | None, path: str) -> list[str]:
    """Non-empty normalized text of every element on the path."""

    return [text for text in (text_of(found) for found in children(node, path)) if text]


def path_text(node: etree._Element | None, path: str) -> str:
    return first_text(children(node, path)) or ""


def attribute(node: etree._Element | None, name: str) -> str:
    """Read an attribute by local name regardless of its namespace."""

    if node is None:
        return ""
    for key, value in node.attrib.items():
        local = key.rsplit("}", 1)[-1] if key.startswith("{") else key
        if local == name:
            return value.strip()
    return ""


def local_name(node: etree._Element) -> str:
    return etree.QName(node).localname
