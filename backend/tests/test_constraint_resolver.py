"""
Unit tests for constraint resolution.

Tests verify:
- Normalizer accepts both input shapes and is idempotent
- Structural and semantic conflict detection
- Priority lattice arbitration (category, domain, hint, input order)
- Unresolved conflicts are explicit and excluded from the resolved set
- Input errors surface as {"error": ...} only
"""
import json

import pytest

from ewrouter.core.metrics import constraint_conflicts_total, constraint_input_errors_total
from ewrouter.models.constraints import Constraint, ConstraintInputError
from ewrouter.services.constraints.arbiter import DEFAULT_LATTICE, LATTICE_VERSION, PriorityArbiter
from ewrouter.services.constraints.detector import ConflictDetector
from ewrouter.services.constraints.normalizer import normalize_constraint_input, parse_constraints
from ewrouter.services.constraints.resolver import ConstraintResolver, resolve, resolve_json


CONSISTENCY_CONFLICT = [
    {"target": "consistency", "value": "strong", "source": "DB"},
    {"target": "consistency", "value": "eventual", "source": "BE"},
]


@pytest.fixture
def resolver():
    return ConstraintResolver()


def constraints(*items):
    return parse_constraints(list(items))


class TestNormalizer:
    """Test constraint input normalization."""

    def test_bare_list(self):
        assert normalize_constraint_input([{"id": "a"}]) == [{"id": "a"}]

    def test_wrapped_list(self):
        assert normalize_constraint_input({"constraints": [{"id": "a"}]}) == [{"id": "a"}]

    @pytest.mark.parametrize(
        "payload",
        [None, {}, {"constraints": None}, {"constraints": "x"}, "text", 42, {"items": []}],
    )
    def test_malformed_is_empty(self, payload):
        assert normalize_constraint_input(payload) == []

    @pytest.mark.parametrize(
        "payload",
        [[{"id": "a"}], {"constraints": [{"id": "a"}]}, None, {"constraints": None}],
    )
    def test_idempotent(self, payload):
        once = normalize_constraint_input(payload)
        assert normalize_constraint_input(once) == once

    def test_missing_ids_are_positional(self):
        parsed = constraints(*CONSISTENCY_CONFLICT)
        assert [c.id for c in parsed] == ["c-0", "c-1"]

    def test_legacy_priority_alias(self):
        parsed = constraints({"id": "a", "source": "DB", "target": "t", "value": 1, "priority": "HARD"})
        assert parsed[0].priority_hint == "hard"

    def test_non_object_element(self):
        with pytest.raises(ConstraintInputError):
            parse_constraints([1, 2])

    def test_missing_required_field(self):
        with pytest.raises(ConstraintInputError, match="index 0"):
            parse_constraints([{"id": "a", "source": "DB", "target": "t"}])

    def test_duplicate_ids(self):
        with pytest.raises(ConstraintInputError, match="Duplicate"):
            parse_constraints([
                {"id": "a", "source": "DB", "target": "t", "value": 1},
                {"id": "a", "source": "BE", "target": "u", "value": 2},
            ])


class TestDetector:
    """Test conflict detection."""

    def test_structural_conflict(self):
        records = ConflictDetector().detect(constraints(*CONSISTENCY_CONFLICT))
        assert len(records) == 1
        assert records[0].type == "structural"
        assert records[0].constraint_ids == ["c-0", "c-1"]
        assert records[0].conflict_id == "cf-1"

    def test_same_value_is_not_a_conflict(self):
        records = ConflictDetector().detect(constraints(
            {"source": "DB", "target": "Consistency", "value": "Strong"},
            {"source": "BE", "target": "consistency", "value": " strong "},
        ))
        assert records == []

    def test_structural_group_covers_all_members(self):
        """Test that every pair with differing values is covered by one record."""
        parsed = constraints(
            {"id": "a", "source": "DB", "target": "queue", "value": "kafka"},
            {"id": "b", "source": "BE", "target": "queue", "value": "sqs"},
            {"id": "c", "source": "IF", "target": "queue", "value": "kafka"},
            {"id": "d", "source": "IF", "target": "region", "value": "eu"},
        )
        records = ConflictDetector().detect(parsed)

        assert len(records) == 1
        covered = set(records[0].constraint_ids)
        for x in parsed:
            for y in parsed:
                if x.target_key == y.target_key and x.value_key != y.value_key:
                    assert {x.id, y.id} <= covered

    def test_semantic_conflict(self):
        records = ConflictDetector().detect(constraints(
            {"id": "a", "source": "DB", "target": "consistency", "value": "strong"},
            {"id": "b", "source": "BE", "target": "latency", "value": "low"},
        ))
        assert len(records) == 1
        assert records[0].type == "semantic"
        assert records[0].constraint_ids == ["a", "b"]
        assert records[0].targets == ["consistency", "latency"]

    def test_semantic_rule_is_symmetric(self):
        records = ConflictDetector().detect(constraints(
            {"id": "b", "source": "BE", "target": "latency", "value": "low"},
            {"id": "a", "source": "DB", "target": "consistency", "value": "strong"},
        ))
        assert [r.type for r in records] == ["semantic"]

    def test_unrelated_targets(self):
        records = ConflictDetector().detect(constraints(
            {"id": "a", "source": "DB", "target": "consistency", "value": "eventual"},
            {"id": "b", "source": "BE", "target": "latency", "value": "low"},
        ))
        assert records == []


class TestLattice:
    """Test priority lattice lookups."""

    def test_explicit_category_wins(self):
        c = Constraint(id="a", source="DB", target="consistency", value="strong", category="Cost")
        assert DEFAULT_LATTICE.category_of(c) == "cost"

    def test_value_table_before_target_table(self):
        c = Constraint(id="a", source="DB", target="consistency", value="Eventual")
        assert DEFAULT_LATTICE.category_of(c) == "availability"

    def test_target_table(self):
        c = Constraint(id="a", source="DB", target="latency", value="p99<50ms")
        assert DEFAULT_LATTICE.category_of(c) == "performance"

    def test_unknown(self):
        c = Constraint(id="a", source="DB", target="queue", value="kafka")
        assert DEFAULT_LATTICE.category_of(c) is None

    def test_domain_rank_unknown_last(self):
        assert DEFAULT_LATTICE.domain_rank("SE") < DEFAULT_LATTICE.domain_rank("IF")
        assert DEFAULT_LATTICE.domain_rank("IF") < DEFAULT_LATTICE.domain_rank("AA")
        assert DEFAULT_LATTICE.domain_rank("AA") < DEFAULT_LATTICE.domain_rank("ZZ")


class TestResolve:
    """Test end-to-end resolution."""

    def test_data_integrity_dominates(self, resolver):
        """Test that strong consistency wins over eventual consistency."""
        output = resolver.resolve(CONSISTENCY_CONFLICT)

        assert len(output["conflicts"]) == 1
        conflict = output["conflicts"][0]
        assert conflict["type"] == "structural"
        assert conflict["resolution"] == "resolved-priority"
        assert conflict["resolved_value"] == "strong"
        assert output["resolved_set"] == [
            {"id": "c-0", "source": "DB", "target": "consistency", "value": "strong"}
        ]
        assert output["metadata"]["total_rejected"] == 1
        assert output["metadata"]["lattice_version"] == LATTICE_VERSION

    def test_wrapped_and_bare_inputs_agree(self, resolver):
        """Test that a single wrapped constraint resolves like the bare form."""
        single = {"id": "c1", "source": "DB", "target": "consistency", "value": "strong"}

        wrapped = resolver.resolve({"constraints": [single]})
        bare = resolver.resolve([single])

        assert wrapped["resolved_set"] == bare["resolved_set"] == [single]
        assert wrapped["conflicts"] == bare["conflicts"] == []

    def test_empty_inputs(self, resolver):
        for payload in (None, [], {"constraints": None}):
            output = resolver.resolve(payload)
            assert output["resolved_set"] == []
            assert output["conflicts"] == []
            assert output["metadata"]["total_declared"] == 0

    def test_domain_breaks_category_tie(self, resolver):
        output = resolver.resolve([
            {"id": "be", "source": "BE", "target": "latency", "value": "low"},
            {"id": "db", "source": "DB", "target": "latency", "value": "moderate"},
        ])
        conflict = output["conflicts"][0]
        assert conflict["resolution"] == "resolved-priority"
        assert conflict["winner_id"] == "db"
        assert [c["id"] for c in output["resolved_set"]] == ["db"]

    def test_same_category_and_domain_is_auto(self, resolver):
        output = resolver.resolve([
            {"id": "a", "source": "BE", "target": "latency", "value": "low"},
            {"id": "b", "source": "BE", "target": "latency", "value": "p99<50ms", "priority_hint": "hard"},
        ])
        conflict = output["conflicts"][0]
        assert conflict["resolution"] == "resolved-auto"
        assert conflict["winner_id"] == "b"
        assert conflict["resolved_value"] == "p99<50ms"

    def test_input_order_breaks_full_tie(self, resolver):
        output = resolver.resolve([
            {"id": "a", "source": "BE", "target": "latency", "value": "low"},
            {"id": "b", "source": "BE", "target": "latency", "value": "moderate"},
        ])
        assert output["conflicts"][0]["winner_id"] == "a"

    def test_unresolved_conflict_is_explicit(self, resolver):
        """Test that a conflict without a priority rule keeps both out of the resolved set."""
        output = resolver.resolve([
            {"id": "a", "source": "DB", "target": "queue", "value": "kafka"},
            {"id": "b", "source": "BE", "target": "queue", "value": "rabbitmq"},
            {"id": "c", "source": "IF", "target": "region", "value": "eu-west-1"},
        ])
        conflict = output["conflicts"][0]

        assert conflict["resolution"] == "unresolved"
        assert "resolved_value" not in conflict
        assert [c["id"] for c in output["resolved_set"]] == ["c"]
        assert output["metadata"]["total_unresolved"] == 1

    def test_hard_beats_soft_without_category(self, resolver):
        """Test that a hard constraint wins over a soft one when no category rule applies."""
        output = resolver.resolve([
            {"id": "a", "source": "BE", "target": "pagination", "value": "cursor", "priority_hint": "hard"},
            {"id": "b", "source": "BE", "target": "pagination", "value": "offset", "priority_hint": "soft"},
        ])
        conflict = output["conflicts"][0]

        assert conflict["resolution"] == "resolved-priority"
        assert conflict["winner_id"] == "a"
        assert conflict["resolved_value"] == "cursor"
        assert "Hard constraint" in conflict["rationale"]
        assert [c["id"] for c in output["resolved_set"]] == ["a"]
        assert output["metadata"]["total_unresolved"] == 0

    def test_hard_beats_unhinted_regardless_of_order(self, resolver):
        output = resolver.resolve([
            {"id": "a", "source": "DB", "target": "pagination", "value": "offset"},
            {"id": "b", "source": "IF", "target": "pagination", "value": "cursor", "priority": "hard"},
        ])
        assert output["conflicts"][0]["winner_id"] == "b"

    @pytest.mark.parametrize("hint", ["hard", "soft"])
    def test_same_hint_without_category_stays_unresolved(self, resolver, hint):
        output = resolver.resolve([
            {"id": "a", "source": "BE", "target": "pagination", "value": "cursor", "priority_hint": hint},
            {"id": "b", "source": "BE", "target": "pagination", "value": "offset", "priority_hint": hint},
        ])
        assert output["conflicts"][0]["resolution"] == "unresolved"
        assert output["resolved_set"] == []

    def test_semantic_conflict_resolution(self, resolver):
        output = resolver.resolve([
            {"id": "a", "source": "DB", "target": "consistency", "value": "strong"},
            {"id": "b", "source": "BE", "target": "latency", "value": "low"},
        ])
        conflict = output["conflicts"][0]
        assert conflict["type"] == "semantic"
        assert conflict["resolution"] == "resolved-priority"
        assert conflict["winner_id"] == "a"
        assert [c["id"] for c in output["resolved_set"]] == ["a"]

    def test_resolved_set_one_per_target(self, resolver):
        output = resolver.resolve([
            {"id": "a", "source": "DB", "target": "consistency", "value": "strong"},
            {"id": "b", "source": "SE", "target": "Consistency", "value": "STRONG"},
            {"id": "c", "source": "BE", "target": "consistency", "value": "eventual"},
        ])
        targets = [c["target"].casefold() for c in output["resolved_set"]]
        assert len(targets) == len(set(targets))
        assert output["resolved_set"][0]["value"].casefold() == "strong"

    def test_arbitration_is_deterministic(self, resolver):
        payload = [
            {"id": "a", "source": "DB", "target": "consistency", "value": "strong"},
            {"id": "b", "source": "BE", "target": "consistency", "value": "eventual"},
            {"id": "c", "source": "BE", "target": "latency", "value": "low"},
            {"id": "d", "source": "IF", "target": "queue", "value": "kafka"},
            {"id": "e", "source": "DB", "target": "queue", "value": "sqs"},
        ]
        first = resolver.resolve(payload)
        second = resolver.resolve(payload)
        assert first["conflicts"] == second["conflicts"]
        assert first["resolved_set"] == second["resolved_set"]

    def test_conflict_metrics(self, resolver):
        counter = constraint_conflicts_total.labels(type="structural", resolution="resolved-priority")
        before = counter._value.get()
        resolver.resolve(CONSISTENCY_CONFLICT)
        assert counter._value.get() == before + 1


class TestInputErrors:
    """Test that malformed input yields only an error field."""

    def test_missing_field(self, resolver):
        before = constraint_input_errors_total._value.get()
        output = resolver.resolve([{"id": "a", "source": "DB"}])
        assert set(output) == {"error"}
        assert constraint_input_errors_total._value.get() == before + 1

    def test_unparsable_json(self):
        output = resolve_json("{not json")
        assert set(output) == {"error"}

    def test_json_entry_point(self):
        output = resolve_json(json.dumps({"constraints": CONSISTENCY_CONFLICT}))
        assert output["conflicts"][0]["resolved_value"] == "strong"

    def test_module_level_resolve(self):
        assert resolve([])["resolved_set"] == []

    def test_custom_arbiter(self):
        resolver = ConstraintResolver(arbiter=PriorityArbiter(DEFAULT_LATTICE))
        assert resolver.resolve(CONSISTENCY_CONFLICT)["conflicts"][0]["resolution"] == "resolved-priority"
