from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping

from app.services.census.errors import InvalidStatusTransition


class TrackerKind(str, enum.Enum):
    abx = "abx"
    ip = "ip"
    vax = "vax"


class AbtStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    discontinued = "discontinued"


class IpStatus(str, enum.Enum):
    active = "Active"
    resolved = "Resolved"
    discharged = "Discharged"


class VaxStatus(str, enum.Enum):
    due = "due"
    overdue = "overdue"
    given = "given"
    declined = "declined"
    discharged = "discharged"


class CloseReason(str, enum.Enum):
    census_auto_discharge = "census_auto_discharge"
    manual_discharge = "manual_discharge"


@dataclass(frozen=True)
class StatusMachine:
    kind: TrackerKind
    status_type: type[enum.Enum]
    transitions: Mapping[enum.Enum, frozenset]
    discharge_target: enum.Enum

    def is_terminal(self, status: enum.Enum) -> bool:
        return not self.transitions.get(status)

    def is_open(self, status: enum.Enum) -> bool:
        return not self.is_terminal(status)

    def check(self, current: enum.Enum, target: enum.Enum) -> None:
        if target not in self.transitions.get(current, frozenset()):
            raise InvalidStatusTransition(self.kind.value, current.value, target.value)

    def coerce(self, value):
        if isinstance(value, self.status_type):
            return value
        text = " ".join(str(value or "").split()).lower()
        for member in self.status_type:
            if text == member.value.lower():
                return member
        # "Active Case", "active - contact" and similar free-text variants
        first = text.split(" ", 1)[0] if text else ""
        for member in self.status_type:
            if first == member.value.lower():
                return member
        raise ValueError(f"Unknown {self.kind.value} status: {value!r}")


ABT_MACHINE = StatusMachine(
    kind=TrackerKind.abx,
    status_type=AbtStatus,
    transitions={
        AbtStatus.active: frozenset({AbtStatus.completed, AbtStatus.discontinued}),
        AbtStatus.completed: frozenset(),
        AbtStatus.discontinued: frozenset(),
    },
    discharge_target=AbtStatus.discontinued,
)

IP_MACHINE = StatusMachine(
    kind=TrackerKind.ip,
    status_type=IpStatus,
    transitions={
        IpStatus.active: frozenset({IpStatus.resolved, IpStatus.discharged}),
        IpStatus.resolved: frozenset(),
        IpStatus.discharged: frozenset(),
    },
    discharge_target=IpStatus.discharged,
)

VAX_MACHINE = StatusMachine(
    kind=TrackerKind.vax,
    status_type=VaxStatus,
    transitions={
        VaxStatus.due: frozenset(
            {VaxStatus.overdue, VaxStatus.given, VaxStatus.declined, VaxStatus.discharged}
        ),
        VaxStatus.overdue: frozenset(
            {VaxStatus.given, VaxStatus.declined, VaxStatus.discharged}
        ),
        VaxStatus.given: frozenset(),
        VaxStatus.declined: frozenset(),
        VaxStatus.discharged: frozenset(),
    },
    discharge_target=VaxStatus.discharged,
)

MACHINES: dict[TrackerKind, StatusMachine] = {
    TrackerKind.abx: ABT_MACHINE,
    TrackerKind.ip: IP_MACHINE,
    TrackerKind.vax: VAX_MACHINE,
}
