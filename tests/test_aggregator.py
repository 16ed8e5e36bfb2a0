import random

from factories import NOW

from tokenstat.aggregator import aggregate_by_model, merge_aggregates
from tokenstat.models import ModelAggregate, Source, UsageRecord


def record(model: "str", input_tokens: "int" = 0, output_tokens: "int" = 0, cache_read: "int" = 0) -> "UsageRecord":
    return UsageRecord(
        timestamp=NOW,
        model=model,
        raw_model=model,
        provider=None,
        source=Source.CLAUDE,
        input=input_tokens,
        output=output_tokens,
        cache_read=cache_read,
    )


class TestAggregateByModel:
    def test_groups_by_canonical_model(self) -> "None":
        aggregated = aggregate_by_model(
            [
                record("sonnet", 10, 5),
                record("opus", 100, 50, 25),
                record("sonnet", 20, 5, 5),
            ]
        )

        assert set(aggregated) == {"sonnet", "opus"}
        sonnet = aggregated["sonnet"]
        assert (sonnet.input, sonnet.output, sonnet.cache_read) == (30, 10, 5)
        assert sonnet.total == 45
        assert sonnet.count == 2
        assert aggregated["opus"].total == 175
        assert aggregated["opus"].count == 1

    def test_empty_input(self) -> "None":
        assert aggregate_by_model([]) == {}

    def test_blank_model_goes_to_unknown(self) -> "None":
        aggregated = aggregate_by_model([record("", 1)])
        assert list(aggregated) == ["unknown"]

    def test_order_independent(self) -> "None":
        records = [record(m, i, i * 2) for i, m in enumerate(["a", "b", "c"] * 5)]
        expected = aggregate_by_model(records)

        shuffled = list(records)
        random.Random(7).shuffle(shuffled)

        assert aggregate_by_model(shuffled) == expected

    def test_total_matches_categories(self) -> "None":
        aggregated = aggregate_by_model([record("x", 3, 4, 5), record("x", 1, 1, 1)])
        item = aggregated["x"]
        assert item.total == item.input + item.output + item.cache_read + item.cache_create


class TestMergeAggregates:
    def test_sums_every_field(self) -> "None":
        day1 = {"sonnet": ModelAggregate("sonnet", 10, 5, 1, 0, 16, 2)}
        day2 = {
            "sonnet": ModelAggregate("sonnet", 1, 1, 1, 1, 4, 1),
            "opus": ModelAggregate("opus", 7, 0, 0, 0, 7, 3),
        }

        merged = merge_aggregates([day1, day2])

        assert merged["sonnet"] == ModelAggregate("sonnet", 11, 6, 2, 1, 20, 3)
        assert merged["opus"] == ModelAggregate("opus", 7, 0, 0, 0, 7, 3)

    def test_inputs_are_not_mutated(self) -> "None":
        day = {"sonnet": ModelAggregate("sonnet", 1, 0, 0, 0, 1, 1)}
        merge_aggregates([day, day])
        assert day["sonnet"].total == 1
