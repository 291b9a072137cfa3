"""
Page renumbering and sheet imposition arithmetic.

Why this module exists:
- It is the only part of the tool with real logic; everything else renders,
  crops or pastes images.
- Keeping it free of I/O makes the index rules easy to test exhaustively.

Index spaces:
- source page: 0 .. source_page_count-1 (0 = front cover, last = back cover,
  everything in between is a two-up spread)
- single page: 0 .. page_count-1, page_count = 2 * (source_page_count - 1)
- sheet: 0 .. page_count/2 - 1, each holding a (left, right) single-page pair
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from .utils import ConfigurationError


@dataclass(frozen=True)
class CoverPage:
    """A cover is rendered once and used as-is for one single page."""

    source_index: int
    single_index: int

    @property
    def single_indices(self) -> Tuple[int, ...]:
        return (self.single_index,)


@dataclass(frozen=True)
class SpreadPage:
    """An interior scan holding two facing pages side by side."""

    source_index: int
    first_page: int
    second_page: int

    @property
    def single_indices(self) -> Tuple[int, ...]:
        return (self.first_page, self.second_page)


SourcePage = Union[CoverPage, SpreadPage]


@dataclass(frozen=True)
class SheetPlan:
    sheet_index: int
    left_page: int
    right_page: int

    @property
    def pair(self) -> Tuple[int, int]:
        return (self.left_page, self.right_page)


def page_count_for(source_page_count: int) -> int:
    """Number of single pages once every spread is split in two."""

    if source_page_count < 2:
        raise ConfigurationError(
            f"Source PDF needs at least 2 pages (front and back cover), got {source_page_count}."
        )
    return 2 * (source_page_count - 1)


def sheet_count_for(page_count: int) -> int:
    if page_count <= 0 or page_count % 2 != 0:
        raise ConfigurationError(
            f"Single page count must be a positive even number, got {page_count}."
        )
    return page_count // 2


def classify_source_page(source_index: int, source_page_count: int) -> SourcePage:
    """
    Map a source page to the single page(s) it becomes.

    Front cover -> single page 0, back cover -> the last single page, spread
    i -> single pages 1 + (i - 1) * 2 and the one after it.
    """

    page_count = page_count_for(source_page_count)
    if not 0 <= source_index < source_page_count:
        raise ConfigurationError(
            f"Source page index {source_index} is out of range [0, {source_page_count})."
        )
    if source_index == 0:
        return CoverPage(source_index=0, single_index=0)
    if source_index == source_page_count - 1:
        return CoverPage(source_index=source_index, single_index=page_count - 1)
    first_page = 1 + (source_index - 1) * 2
    return SpreadPage(
        source_index=source_index,
        first_page=first_page,
        second_page=first_page + 1,
    )


def plan_sheet(sheet_index: int, page_count: int) -> SheetPlan:
    """
    Decide which two single pages share a sheet, and on which side.

    Every sheet carries one page from the front half of the book and its
    mirror from the back half; the front-half page sits on the right for even
    sheets and on the left for odd sheets.
    """

    sheets = sheet_count_for(page_count)
    if not 0 <= sheet_index < sheets:
        raise ConfigurationError(
            f"Sheet index {sheet_index} is out of range [0, {sheets})."
        )
    mirror = page_count - sheet_index - 1
    if sheet_index % 2 == 0:
        return SheetPlan(sheet_index=sheet_index, left_page=mirror, right_page=sheet_index)
    return SheetPlan(sheet_index=sheet_index, left_page=sheet_index, right_page=mirror)


def build_plan(page_count: int) -> List[SheetPlan]:
    """All sheets in output order."""

    return [plan_sheet(index, page_count) for index in range(sheet_count_for(page_count))]


def unfold(plans: Sequence[SheetPlan]) -> List[int]:
    """
    Recover reading order from a sheet sequence.

    Front-half pages come out in sheet order, then back-half pages in
    reverse sheet order, which is what folding the printed stack does.
    """

    fronts: List[int] = []
    backs: List[int] = []
    for plan in plans:
        if plan.sheet_index % 2 == 0:
            fronts.append(plan.right_page)
            backs.append(plan.left_page)
        else:
            fronts.append(plan.left_page)
            backs.append(plan.right_page)
    return fronts + list(reversed(backs))
