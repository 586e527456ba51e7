"""Authority identifier namespacing."""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Iterable, Mapping

_URI_RE = re.compile(r"^https?:", re.IGNORECASE)

DEFAULT_TYPE = "*"


@dataclass(frozen=True, slots=True)
class AuthorityNamespaceMapper:
    """Prefix local authority ids with a per-type namespace.

    ``namespaces`` maps an id type (``topic``, ``geographic``, ...) to the
    namespace of the source's authority records; ``*`` is the fallback for
    types without their own entry. Ids that already are URIs are left alone.
    """

    namespaces: Mapping[str, str] = field(default_factory=dict)

    def namespace_for(self, id_type: str) -> str:
        return self.namespaces.get(id_type) or self.namespaces.get(DEFAULT_TYPE, "")

    def add_namespace(self, ids: Iterable[str], id_type: str) -> list[str]:
        namespace = self.namespace_for(id_type)
        result = []
        for value in ids:
            value = value.strip()
            if not value:
                continue
            if namespace and not _URI_RE.match(value):
                value = f"{namespace}.{value}"
            result.append(value)
        return result


def typed_place_id(value: str, id_type: str) -> str:
    """Qualify a non-URI place id with its ``type`` attribute: ``(type)id``."""

    value = value.strip()
    if id_type and not _URI_RE.match(value):
        return f"({id_type}){value}"
    return value
