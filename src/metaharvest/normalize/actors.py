"""Event selection and actor extraction for LIDO records."""

from __future__ import annotations

from typing import Iterable, Mapping, Union

from lxml import etree

from metaharvest.normalize.models import ParsedRecord
from metaharvest.normalize.text import unique
from metaharvest.normalize.xml import attribute, children, first_text, texts

# A single label, several labels (all priority 0) or a label -> priority table.
EventSpec = Union[str, Iterable[str], Mapping[str, int], None]

EVENT_PATH = "descriptiveMetadata/eventWrap/eventSet/event"


def priority_table(events: EventSpec) -> dict[str, int] | None:
    """Normalize an event spec into a lowercase label -> priority mapping."""

    if events is None:
        return None
    if isinstance(events, str):
        return {events.lower(): 0}
    if isinstance(events, Mapping):
        return {str(label).lower(): int(priority) for label, priority in events.items()}
    return {str(label).lower(): 0 for label in events}


class ActorEventResolver:
    """Select events by type label and pull actors and names out of them.

    Results are memoized on the record, so repeated lookups for the same
    event table during one normalization run are free.
    """

    def event_types(self, node: etree._Element) -> list[str]:
        return [term.lower() for term in texts(node, "eventType/term")]

    def event_nodes(self, record: ParsedRecord, events: EventSpec = None) -> list[etree._Element]:
        """Events whose type is in ``events``, ordered by priority (stable)."""

        table = priority_table(events)
        key = "events:*" if table is None else "events:" + repr(sorted(table.items()))
        return record.memoize(key, lambda: self._select(record, table))

    def _select(self, record: ParsedRecord, table: dict[str, int] | None) -> list[etree._Element]:
        nodes = children(record.document, EVENT_PATH)
        if table is None:
            return nodes
        ranked: list[tuple[int, int, etree._Element]] = []
        for position, node in enumerate(nodes):
            priorities = [table[label] for label in self.event_types(node) if label in table]
            if priorities:
                ranked.append((min(priorities), position, node))
        ranked.sort(key=lambda item: (item[0], item[1]))
        return [node for _, _, node in ranked]

    def actors(
        self,
        record: ParsedRecord,
        events: EventSpec = None,
        roles: str | Iterable[str] | None = None,
        include_roles: bool = False,
    ) -> list[str]:
        """Actor names of the selected events, optionally filtered by role.

        With ``include_roles`` each name is suffixed with ``, <role>`` when the
        actor has a role term.
        """

        table = priority_table(events)
        wanted_roles = None
        if roles is not None:
            wanted_roles = {roles.lower()} if isinstance(roles, str) else {role.lower() for role in roles}

        key = "actors:{}:{}:{}".format(
            sorted(table.items()) if table is not None else "*",
            sorted(wanted_roles) if wanted_roles is not None else "*",
            include_roles,
        )

        def build() -> list[str]:
            result: list[str] = []
            for event in self.event_nodes(record, table):
                for actor_in_role in children(event, "eventActor/actorInRole"):
                    name = self._actor_name(actor_in_role)
                    if not name:
                        continue
                    role = first_text(children(actor_in_role, "roleActor/term")) or ""
                    if wanted_roles is not None and role.lower() not in wanted_roles:
                        continue
                    result.append(f"{name}, {role}" if include_roles and role else name)
            return unique(result)

        return record.memoize(key, build)

    def _actor_name(self, actor_in_role: etree._Element) -> str:
        name_sets = children(actor_in_role, "actor/nameActorSet/appellationValue")
        preferred = [node for node in name_sets if attribute(node, "pref") == "preferred"]
        return first_text(preferred or name_sets) or ""

    def event_names(self, record: ParsedRecord, events: EventSpec) -> list[str]:
        return [
            name
            for event in self.event_nodes(record, events)
            for name in [first_text(children(event, "eventName/appellationValue"))]
            if name
        ]
