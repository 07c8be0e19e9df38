"""
Step outcomes for the generation workflow.

A step either succeeds (Ok), fails softly and hands back a fallback value
the job can continue with (SoftFail), or fails hard and ends the job
(HardFail). Call sites check the variant explicitly so a soft failure can
never be mistaken for success or for a fatal error.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from shared.errors import ServiceError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class SoftFail(Generic[T]):
    fallback: T
    reason: str


@dataclass(frozen=True)
class HardFail:
    error: ServiceError


Outcome = Union[Ok[T], SoftFail[T], HardFail]


def unwrap(outcome: "Outcome[T]") -> T:
    """
    Return the value to continue with.

    Raises:
        ServiceError: The wrapped error of a HardFail
    """
    if isinstance(outcome, Ok):
        return outcome.value
    if isinstance(outcome, SoftFail):
        return outcome.fallback
    if isinstance(outcome, HardFail):
        raise outcome.error
    raise TypeError(f"Unknown outcome: {outcome!r}")
