"""Service that drives the update cycle against real collaborators."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable

from services.patcher.archive import ArchiveExtractor, ZipArchiveExtractor
from services.patcher.constants import DEFAULT_MAX_UPDATE_PASSES
from services.patcher.cycle import (
    ApplyUpdate,
    CompareFiles,
    ComparisonCompleted,
    Effect,
    Event,
    FetchManifest,
    ManifestFetched,
    State,
    StepFailed,
    Transition,
    UpdateApplied,
    initial_transition,
    reduce,
)
from services.patcher.manifest import fetch_latest
from services.patcher.models import PatcherError
from services.patcher.providers import ReleaseProvider
from services.patcher.reconciler import Reconciler
from services.patcher.release_assets import apply_release_update


_LOGGER = logging.getLogger(__name__)

StateListener = Callable[[State], None]


class UpdateCycleRunner:
    """Hold the current cycle state and execute pending effects one at a time.

    Listeners are called with every new state, including the initial
    ``Checking`` state when :meth:`start` runs.  They observe state only and
    must not drive the runner.  An exception raised by a listener is not
    caught: it propagates out of :meth:`step` or :meth:`run` and leaves the
    cycle where it stopped.  Calling :meth:`start` or :meth:`run` again
    begins a fresh cycle.
    """

    def __init__(
        self,
        provider: ReleaseProvider,
        *,
        owner: str,
        repo: str,
        package_prefix: str,
        destination_root: Path,
        extractor: ArchiveExtractor | None = None,
        reconciler: Reconciler | None = None,
        max_update_passes: int = DEFAULT_MAX_UPDATE_PASSES,
        listeners: Iterable[StateListener] | None = None,
    ) -> None:
        self._provider = provider
        self._owner = owner
        self._repo = repo
        self._package_prefix = package_prefix
        self._destination_root = Path(destination_root)
        self._extractor = extractor or ZipArchiveExtractor()
        self._reconciler = reconciler or Reconciler(self._destination_root)
        self._max_update_passes = max_update_passes
        self._listeners: list[StateListener] = list(listeners or [])
        self._state: State | None = None
        self._pending: list[Effect] = []

    @property
    def state(self) -> State | None:
        return self._state

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def start(self) -> State:
        """Enter the initial state, discarding any previous progress."""

        self._pending = []
        transition = initial_transition()
        self._apply(transition)
        return transition.state

    def step(self) -> State:
        """Execute the next pending effect and return the resulting state."""

        if self._state is None:
            return self.start()
        if not self._pending:
            return self._state
        effect = self._pending.pop(0)
        event = self._execute(effect)
        self._apply(reduce(self._state, event, max_update_passes=self._max_update_passes))
        return self._state

    def run(self) -> State:
        """Drive the cycle until it reaches ``Finished`` or ``Error``."""

        state = self.start()
        while not state.terminal:
            state = self.step()
        return state

    def _apply(self, transition: Transition) -> None:
        previous = self._state
        self._state = transition.state
        self._pending.extend(transition.effects)
        if previous is not None and transition.state == previous:
            return
        _LOGGER.debug("Update cycle entered %s", transition.state.name)
        for listener in list(self._listeners):
            listener(transition.state)

    def _execute(self, effect: Effect) -> Event:
        try:
            if isinstance(effect, FetchManifest):
                release, manifest = fetch_latest(self._provider, self._owner, self._repo)
                return ManifestFetched(release, manifest)
            if isinstance(effect, CompareFiles):
                return ComparisonCompleted(self._reconciler.compare(effect.manifest))
            if isinstance(effect, ApplyUpdate):
                _LOGGER.info(
                    "Repairing %s file(s) from release %s",
                    len(effect.divergence),
                    effect.release.tag,
                )
                apply_release_update(
                    effect.release,
                    provider=self._provider,
                    extractor=self._extractor,
                    destination_root=self._destination_root,
                    package_prefix=self._package_prefix,
                )
                return UpdateApplied()
        except PatcherError as exc:
            _LOGGER.warning("Update cycle step %s failed: %s", type(effect).__name__, exc)
            return StepFailed(str(exc))
        except Exception as exc:
            _LOGGER.exception("Unexpected error during update cycle step %s", type(effect).__name__)
            return StepFailed(f"Unexpected error: {exc}")
        raise TypeError(f"Unsupported effect: {effect!r}")


__all__ = ["StateListener", "UpdateCycleRunner"]
