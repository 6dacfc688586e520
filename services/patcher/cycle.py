"""States, events and the transition function of the update cycle.

The cycle is modelled as a pure reducer: :func:`reduce` maps the current state
and an event to the next state plus the effects the caller must execute.  The
reducer performs no I/O; :class:`services.patcher.service.UpdateCycleRunner`
executes effects and feeds their outcomes back as events.

::

    Checking --ManifestFetched--> Comparing --(empty)--> Finished
        ^                             |
        |                         (divergent)
        |                             v
        +------UpdateApplied------ Updating

    any non-terminal state --StepFailed--> Error
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from services.patcher.constants import DEFAULT_MAX_UPDATE_PASSES
from services.patcher.manifest import Manifest
from services.patcher.models import Release
from services.patcher.reconciler import DivergenceSet


class InvalidTransition(RuntimeError):
    """Raised when an event is delivered to a state that cannot accept it."""


# States


@dataclass(frozen=True)
class Checking:
    passes: int = 0

    name = "checking"
    progress = 0.0
    terminal = False

    @property
    def label(self) -> str:
        return "Checking for updates. Please wait."


@dataclass(frozen=True)
class Comparing:
    release: Release
    manifest: Manifest
    passes: int = 0

    name = "comparing"
    progress = 0.25
    terminal = False

    @property
    def label(self) -> str:
        return "Checking local files"


@dataclass(frozen=True)
class Updating:
    release: Release
    divergence: DivergenceSet
    attempt: int = 1

    name = "updating"
    progress = 0.5
    terminal = False

    @property
    def label(self) -> str:
        return f"{len(self.divergence)} files failed to validate. Updating..."


@dataclass(frozen=True)
class Finished:
    name = "finished"
    progress = 1.0
    terminal = True

    @property
    def label(self) -> str:
        return "All files are up to date."


@dataclass(frozen=True)
class Error:
    message: str

    name = "error"
    progress = 1.0
    terminal = True

    @property
    def label(self) -> str:
        return f"Error: {self.message}"


State = Union[Checking, Comparing, Updating, Finished, Error]


# Events


@dataclass(frozen=True)
class ManifestFetched:
    release: Release
    manifest: Manifest


@dataclass(frozen=True)
class ComparisonCompleted:
    divergence: DivergenceSet


@dataclass(frozen=True)
class UpdateApplied:
    pass


@dataclass(frozen=True)
class StepFailed:
    message: str


Event = Union[ManifestFetched, ComparisonCompleted, UpdateApplied, StepFailed]


# Effects


@dataclass(frozen=True)
class FetchManifest:
    pass


@dataclass(frozen=True)
class CompareFiles:
    manifest: Manifest


@dataclass(frozen=True)
class ApplyUpdate:
    release: Release
    divergence: DivergenceSet


Effect = Union[FetchManifest, CompareFiles, ApplyUpdate]


@dataclass(frozen=True)
class Transition:
    state: State
    effects: Tuple[Effect, ...] = ()


def initial_transition() -> Transition:
    """Return the entry state of a fresh cycle and its first effect."""

    return Transition(Checking(), (FetchManifest(),))


def reduce(
    state: State,
    event: Event,
    *,
    max_update_passes: int = DEFAULT_MAX_UPDATE_PASSES,
) -> Transition:
    """Return the transition triggered by ``event`` in ``state``.

    Terminal states ignore every event.  ``max_update_passes`` bounds how many
    times the package is applied before persistent divergence becomes an
    error; ``0`` removes the bound.
    """

    if state.terminal:
        return Transition(state)

    if isinstance(event, StepFailed):
        return Transition(Error(event.message))

    if isinstance(state, Checking) and isinstance(event, ManifestFetched):
        return Transition(
            Comparing(event.release, event.manifest, passes=state.passes),
            (CompareFiles(event.manifest),),
        )

    if isinstance(state, Comparing) and isinstance(event, ComparisonCompleted):
        if not event.divergence:
            return Transition(Finished())
        if max_update_passes and state.passes >= max_update_passes:
            return Transition(
                Error(
                    f"{len(event.divergence)} files still failed to validate after "
                    f"{state.passes} update attempt(s)"
                )
            )
        return Transition(
            Updating(state.release, event.divergence, attempt=state.passes + 1),
            (ApplyUpdate(state.release, event.divergence),),
        )

    if isinstance(state, Updating) and isinstance(event, UpdateApplied):
        return Transition(Checking(passes=state.attempt), (FetchManifest(),))

    raise InvalidTransition(
        f"{type(event).__name__} is not valid in state {type(state).__name__}"
    )


__all__ = [
    "ApplyUpdate",
    "Checking",
    "CompareFiles",
    "Comparing",
    "ComparisonCompleted",
    "Effect",
    "Error",
    "Event",
    "FetchManifest",
    "Finished",
    "InvalidTransition",
    "ManifestFetched",
    "State",
    "StepFailed",
    "Transition",
    "UpdateApplied",
    "Updating",
    "initial_transition",
    "reduce",
]
