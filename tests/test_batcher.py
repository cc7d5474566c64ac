"""Tests for greedy section batching."""

from typing import List

import pytest

from batcher import group_sections_into_batches
from segmenter import Section


def make_sections(sizes: List[int]) -> List[Section]:
    sections = []
    offset = 0
    for i, size in enumerate(sizes):
        content = f"Section {i} body"
        sections.append(Section(
            name=f"Section {i}",
            ordinal=i,
            char_start=offset,
            char_end=offset + len(content),
            content=content,
            estimated_tokens=size,
        ))
        offset += len(content)
    return sections


SCENARIO_SIZES = [40_000, 35_000, 30_000, 25_000, 20_000, 25_000, 20_000]


class TestGroupSectionsIntoBatches:

    def test_greedy_fill_at_default_budget(self):
        batches = group_sections_into_batches(make_sections(SCENARIO_SIZES), 180_000)

        assert [b.cumulative_estimated_tokens for b in batches] == [175_000, 20_000]
        assert [len(b.sections) for b in batches] == [6, 1]

    def test_smaller_budget_gives_more_batches(self):
        batches = group_sections_into_batches(make_sections(SCENARIO_SIZES), 100_000)

        assert [b.cumulative_estimated_tokens for b in batches] == [75_000, 100_000, 20_000]
        assert [b.section_names for b in batches] == [
            ["Section 0", "Section 1"],
            ["Section 2", "Section 3", "Section 4", "Section 5"],
            ["Section 6"],
        ]

    def test_every_section_in_exactly_one_batch_in_order(self):
        sections = make_sections(SCENARIO_SIZES)
        for budget in (30_000, 60_000, 100_000, 180_000, 500_000):
            batches = group_sections_into_batches(sections, budget)
            flattened = [s for b in batches for s in b.sections]
            assert flattened == sections

    def test_batch_indexes_are_sequential(self):
        batches = group_sections_into_batches(make_sections(SCENARIO_SIZES), 60_000)
        assert [b.batch_index for b in batches] == list(range(len(batches)))

    def test_non_oversized_batches_respect_budget(self):
        batches = group_sections_into_batches(make_sections(SCENARIO_SIZES), 60_000)
        for batch in batches:
            assert batch.cumulative_estimated_tokens <= 60_000

    def test_oversized_section_is_sent_alone(self):
        batches = group_sections_into_batches(make_sections([190_000]), 180_000)

        assert len(batches) == 1
        assert batches[0].oversized
        assert batches[0].cumulative_estimated_tokens == 190_000

    def test_oversized_section_between_others(self):
        batches = group_sections_into_batches(make_sections([10_000, 200_000, 10_000, 5_000]), 180_000)

        assert [b.section_names for b in batches] == [
            ["Section 0"],
            ["Section 1"],
            ["Section 2", "Section 3"],
        ]
        assert [b.oversized for b in batches] == [False, True, False]

    def test_no_sections(self):
        assert group_sections_into_batches([], 180_000) == []

    def test_batch_text_joins_contents(self):
        batches = group_sections_into_batches(make_sections([1, 1]), 10)
        assert batches[0].text() == "Section 0 body\n\nSection 1 body"


@pytest.mark.parametrize("budget", [1, 25_000, 45_000])
def test_small_budgets_never_drop_sections(budget):
    sections = make_sections(SCENARIO_SIZES)
    batches = group_sections_into_batches(sections, budget)
    assert sum(len(b.sections) for b in batches) == len(sections)


@pytest.mark.parametrize("sizes", [SCENARIO_SIZES, [10_000, 200_000, 10_000, 5_000], [250_000, 190_000, 1_000]])
@pytest.mark.parametrize("budget", [30_000, 60_000, 100_000, 180_000, 500_000])
def test_tokens_are_conserved(sizes, budget):
    sections = make_sections(sizes)
    batches = group_sections_into_batches(sections, budget)
    assert sum(b.cumulative_estimated_tokens for b in batches) == sum(s.estimated_tokens for s in sections)
