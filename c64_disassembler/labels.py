"""
Label table: address -> symbolic name.

Labels are created lazily the first time an address is referenced and are
named `label<N>` in allocation order unless a name is supplied. A label only
becomes visible (printed by name instead of as a hex literal) once the
disassembler has actually passed over its address, or when it is a constant.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

__all__ = ['Label', 'LabelTable', 'LOCAL_LABEL_MARKER']

# KickAssembler multi-label prefix: referenced as !name+ / !name-
LOCAL_LABEL_MARKER = '!'


@dataclass
class Label:
    address: int
    name: str
    visible: bool = False
    uses: int = 0

    @property
    def is_local(self) -> bool:
        return self.name.startswith(LOCAL_LABEL_MARKER)


class LabelTable:
    """Address-keyed label store shared by all passes of one run."""

    def __init__(self):
        self._labels: Dict[int, Label] = {}

    def ensure(self, address: int, name: Optional[str] = None,
               visible: bool = False, definition_only: bool = False) -> Label:
        """Create the label at `address` or count another use of it.

        definition_only marks seeding (constants, configured names) that
        must not count as a reference.
        """
        label = self._labels.get(address)
        if label is not None:
            if not definition_only:
                label.uses += 1
            return label
        label = Label(address, name or f"label{len(self._labels) + 1}", visible)
        self._labels[address] = label
        return label

    def get(self, address: int) -> Optional[Label]:
        return self._labels.get(address)

    def mark_visible(self, address: int) -> Optional[Label]:
        label = self._labels.get(address)
        if label is not None:
            label.visible = True
        return label

    def __contains__(self, address: int) -> bool:
        return address in self._labels

    def __iter__(self) -> Iterator[Label]:
        return iter(self._labels.values())

    def __len__(self) -> int:
        return len(self._labels)
