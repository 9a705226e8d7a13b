from __future__ import annotations

from dataclasses import dataclass, field

from decision_graph.modules.catalog.schemas import Consumer, DecisionDataset


@dataclass(frozen=True, slots=True)
class GraphSummary:
    decisions: int
    options: int
    effects: int
    consumers: int
    consumer_edges: int


@dataclass(slots=True)
class GraphIndex:
    """Reverse maps derived from the catalogs.

    ``produced_by`` keeps a single producer per effect (the last decision in
    dataset order that produces it); ``producers_of`` keeps all of them.
    """

    produced_by: dict[str, str] = field(default_factory=dict)
    producers_of: dict[str, list[str]] = field(default_factory=dict)
    consumers_of: dict[str, list[Consumer]] = field(default_factory=dict)
    summary: GraphSummary | None = None

    def producer_of(self, effect_id: str) -> str | None:
        return self.produced_by.get(effect_id)

    def producers_for(self, effect_id: str) -> list[str]:
        return list(self.producers_of.get(effect_id, []))

    def consumers_for(self, effect_id: str) -> list[Consumer]:
        return list(self.consumers_of.get(effect_id, []))

    def consumers_in_tape(self, tape: str) -> dict[str, list[Consumer]]:
        out: dict[str, list[Consumer]] = {}
        for effect_id, consumers in self.consumers_of.items():
            in_tape = [consumer for consumer in consumers if consumer.tape == tape]
            if in_tape:
                out[effect_id] = in_tape
        return out


def build_graph_index(dataset: DecisionDataset) -> GraphIndex:
    index = GraphIndex()

    for decision_id, decision in dataset.decisions.items():
        for option in decision.options:
            for effect_id in option.effects:
                index.produced_by[effect_id] = decision_id
                producers = index.producers_of.setdefault(effect_id, [])
                if decision_id not in producers:
                    producers.append(decision_id)

    consumer_edges = 0
    for consumer in dataset.consumers.values():
        for effect_id in dict.fromkeys(consumer.checks):
            index.consumers_of.setdefault(effect_id, []).append(consumer)
            consumer_edges += 1

    index.summary = GraphSummary(
        decisions=len(dataset.decisions),
        options=dataset.option_count(),
        effects=len(dataset.effects),
        consumers=len(dataset.consumers),
        consumer_edges=consumer_edges,
    )
    return index
