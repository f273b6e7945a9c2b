"""Migration chain for savestate schema versions.

A migration step takes a savestate at version N and returns one at a
higher version (normally N + 1). :func:`run_migration_chain` applies a step
repeatedly until the target version is reached.

Migration Guidelines:
1. Each step must strictly increase ``version``; a step that does not is
   treated as misconfigured and aborts the chain
2. Steps must not mutate their input; return a new savestate
3. Register one step per source version in a :class:`StepRegistryMigrator`,
   or pass a single step callback to :class:`ChainMigrator`
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .errors import ErrorCode, MigrationError
from .protocols import Savestate

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Savestate)

# Type alias for migration step functions
MigrationStep = Callable[[Any], Any]


@dataclass(frozen=True)
class MigrationResult(Generic[S]):
    """Outcome of a migration chain.

    ``state`` is None whenever ``ok`` is False; a partially migrated value is
    never exposed.
    """

    state: S | None
    ok: bool
    steps: int = 0
    error: MigrationError | None = None


def _fail(error: MigrationError, log: logging.Logger) -> MigrationResult[Any]:
    log.error(f"Migration failed: {error.message}")
    return MigrationResult(state=None, ok=False, error=error)


def run_migration_chain(
    old: S,
    step: Callable[[S], S],
    target_version: int,
    *,
    log: logging.Logger | None = None,
) -> MigrationResult[S]:
    """Step ``old`` version by version up to ``target_version``.

    Args:
        old: Savestate to migrate
        step: Callback migrating a savestate to the next version
        target_version: Version to stop at
        log: Logger to report progress to (defaults to this module's)

    Returns:
        MigrationResult, successful only if ``target_version`` was reached exactly
    """
    log = log or logger

    if old is None:
        return _fail(MigrationError(message="Cannot migrate a missing savestate"), log)

    start_version = old.version
    if start_version == target_version:
        return MigrationResult(state=old, ok=True, steps=0)

    if start_version > target_version:
        return _fail(
            MigrationError(
                ErrorCode.E301_DOWNGRADE_REJECTED,
                f"Savestate version {start_version} is newer than current version "
                f"{target_version}. Cannot migrate.",
                from_version=start_version,
                to_version=target_version,
            ),
            log,
        )

    current = old
    steps = 0
    while current.version < target_version:
        old_version = current.version
        try:
            current = step(current)
        except Exception as e:
            return _fail(
                MigrationError(
                    ErrorCode.E304_MIGRATION_STEP_FAILED,
                    f"Migration from v{old_version} raised {type(e).__name__}: {e}",
                    from_version=old_version,
                ),
                log,
            )

        if current is None or current.version <= old_version:
            got = None if current is None else current.version
            return _fail(
                MigrationError(
                    ErrorCode.E302_MIGRATION_STALLED,
                    f"Migration from v{old_version} did not increment version. "
                    f"Expected v{old_version + 1}, got v{got}.",
                    from_version=old_version,
                ),
                log,
            )

        steps += 1
        log.info(f"Migrated savestate: v{old_version} -> v{current.version}")

    if current.version != target_version:
        return _fail(
            MigrationError(
                message=f"Migration overshot target: reached v{current.version}, "
                f"expected v{target_version}",
                from_version=start_version,
                to_version=target_version,
            ),
            log,
        )

    log.info(
        f"Migration complete: v{start_version} -> v{target_version} ({steps} steps)"
    )
    return MigrationResult(state=current, ok=True, steps=steps)


class ChainMigrator(Generic[S]):
    """Migrator built from a single "migrate to next version" callback."""

    def __init__(self, current_version: int, step: Callable[[S], S]) -> None:
        if current_version < 1:
            raise ValueError(f"current_version must be >= 1, got {current_version}")
        self._current_version = current_version
        self._step = step

    @property
    def current_version(self) -> int:
        return self._current_version

    def migrate(self, state: S) -> MigrationResult[S]:
        return run_migration_chain(state, self._step, self._current_version)

    def try_migrate(self, state: S) -> tuple[S | None, bool]:
        result = self.migrate(state)
        return result.state, result.ok


class StepRegistryMigrator(ChainMigrator[S]):
    """Migrator with one registered step per source version.

    Usage:
        migrator = StepRegistryMigrator(current_version=3)

        @migrator.step(1)
        def v1_to_v2(state):
            return state.evolve(version=2, ...)
    """

    def __init__(self, current_version: int) -> None:
        super().__init__(current_version, self._dispatch)
        self._steps: dict[int, Callable[[S], S]] = {}

    def register(self, from_version: int, func: Callable[[S], S]) -> None:
        """Register the step migrating ``from_version`` to the next version.

        Raises:
            MigrationError: If the version is out of range or already registered
        """
        if from_version < 1 or from_version >= self.current_version:
            raise MigrationError(
                message=f"from_version ({from_version}) must be in "
                f"[1, {self.current_version})",
                from_version=from_version,
            )
        if from_version in self._steps:
            raise MigrationError(
                message=f"Migration step from v{from_version} already registered",
                from_version=from_version,
            )
        self._steps[from_version] = func
        logger.debug(f"Registered migration step from v{from_version}")

    def step(self, from_version: int) -> Callable[[Callable[[S], S]], Callable[[S], S]]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Callable[[S], S]) -> Callable[[S], S]:
            self.register(from_version, func)
            return func

        return decorator

    def migration_path(self, from_version: int, to_version: int | None = None) -> list[tuple[int, int]]:
        """Get the sequence of registered hops between two versions.

        Raises:
            MigrationError: On downgrade or when a step is missing
        """
        to_version = self.current_version if to_version is None else to_version
        if from_version > to_version:
            raise MigrationError(
                ErrorCode.E301_DOWNGRADE_REJECTED,
                f"Cannot downgrade schema from version {from_version} to {to_version}.",
                from_version=from_version,
                to_version=to_version,
            )

        path: list[tuple[int, int]] = []
        for version in range(from_version, to_version):
            if version not in self._steps:
                raise MigrationError(
                    ErrorCode.E303_MIGRATION_STEP_MISSING,
                    f"No migration step from version {version}. "
                    f"Registered: {sorted(self._steps)}",
                    from_version=version,
                    to_version=to_version,
                )
            path.append((version, version + 1))
        return path

    def _dispatch(self, state: S) -> S:
        func = self._steps.get(state.version)
        if func is None:
            raise MigrationError(
                ErrorCode.E303_MIGRATION_STEP_MISSING,
                f"No migration step registered for version {state.version}",
                from_version=state.version,
            )
        return func(state)
