"""
Address Resolver: turns an address into operand text.

A visible label is printed by name. Local labels (`!name`) are printed with
a direction suffix relative to the current address, `+` for forward and
`-` for backward references, the way KickAssembler resolves multi-labels:
to the nearest label of that name in the given direction. If a different
label with the same name sits at least as close in that direction, the
assembler would pick the wrong one, so that is an error instead.
"""

from __future__ import annotations
from typing import Callable

from .errors import DuplicateLabelNameError, SelfRelativeReferenceError
from .labels import Label, LabelTable

__all__ = ['AddressResolver', 'local_name', 'hex_literal']


def hex_literal(address: int, width: int = 4) -> str:
    return f"${address:0{width}x}"


def local_name(label: Label, current: int) -> str:
    """Suffixed name of a label as seen from `current`."""
    if current > label.address:
        return label.name + '-'
    if current < label.address:
        return label.name + '+'
    return label.name


class AddressResolver:
    """Resolve addresses against a label table, relative to a moving position."""

    def __init__(self, labels: LabelTable, current_address: Callable[[], int]):
        self.labels = labels
        self.current_address = current_address

    def resolve(self, address: int, width: int = 4) -> str:
        label = self.labels.get(address)
        if label is None or not label.visible:
            return hex_literal(address, width)
        if not label.is_local:
            return label.name

        current = self.current_address()
        if current == address:
            raise SelfRelativeReferenceError(
                f"Local label '{label.name}' cannot reference its own address", current)
        self._assert_closest(label, current)
        return local_name(label, current)

    def _assert_closest(self, target: Label, current: int):
        name = local_name(target, current)
        distance = abs(target.address - current)
        for other in self.labels:
            if other.address == target.address:
                continue
            if local_name(other, current) == name and abs(other.address - current) <= distance:
                raise DuplicateLabelNameError(
                    f"Duplicate label {target.name}: '{name}' would resolve to "
                    f"${other.address:04x} instead of ${target.address:04x}", current)
