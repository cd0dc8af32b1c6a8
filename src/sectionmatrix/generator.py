"""Crossing parameter bindings with section paths into runnable cases."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterator, Sequence

from sectionmatrix.declaration import TestDeclaration
from sectionmatrix.matrix import expand_matrix
from sectionmatrix.models import SectionNode, TestCaseEntry

logger = logging.getLogger(__name__)


def _labelled_chains(
    nodes: Sequence[SectionNode],
    labels: tuple[str, ...] = (),
    path: tuple[int, ...] = (),
) -> Iterator[tuple[tuple[int, ...], tuple[str, ...]]]:
    # Siblings sharing a name get their index appended so names stay unique.
    counts = Counter(node.name for node in nodes)
    for node in nodes:
        label = node.name if counts[node.name] == 1 else f"{node.name}#{node.index}"
        chain_labels = labels + (label,)
        chain_path = path + (node.index,)
        if node.is_leaf:
            yield chain_path, chain_labels
        else:
            yield from _labelled_chains(node.children, chain_labels, chain_path)


def section_chains(declaration: TestDeclaration) -> list[tuple[tuple[int, ...], tuple[str, ...]]]:
    """Every leaf path of the declaration with its section labels.

    A test without sections has the single empty path.
    """

    chains = list(_labelled_chains(declaration.sections.children))
    return chains or [((), ())]


def case_name(
    declaration: TestDeclaration,
    binding_name: str,
    section_labels: Sequence[str],
) -> str:
    segments = [declaration.name]
    if binding_name:
        segments.append(binding_name)
    segments.extend(section_labels)
    return declaration.settings.name_separator.join(segments)


def generate_cases(declaration: TestDeclaration) -> list[TestCaseEntry]:
    """Generate one entry per (binding, leaf path) combination.

    Bindings are the outer loop, so every section of one parameter case is
    listed under that case's name before the next case starts.
    """

    chains = section_chains(declaration)
    entries: list[TestCaseEntry] = []
    for binding in expand_matrix(declaration):
        suffix = binding.name
        for path, labels in chains:
            entries.append(
                TestCaseEntry(
                    name=case_name(declaration, suffix, labels),
                    test=declaration.name,
                    binding=binding.as_kwargs(),
                    binding_name=suffix,
                    path=path,
                    section_names=labels,
                )
            )

    logger.debug("generated %d cases for %s", len(entries), declaration.name)
    return entries
