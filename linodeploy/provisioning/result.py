"""Structured outcome of create and update runs."""

import logging
from dataclasses import dataclass, field

from linodeploy.state import DesiredState, InstanceState

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """Recorded state plus what was committed before any failure.

    Create and update never roll back: when a step fails, ``state`` still
    carries every attribute committed by earlier steps (always the instance
    id once the instance exists), ``step`` names the failed step and
    ``error`` holds the typed error.
    """

    state: InstanceState
    committed: list[str] = field(default_factory=list)
    step: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def connection(self) -> dict:
        return self.state.connection

    def commit(self, desired: DesiredState, *names, **computed):
        """Record attributes as applied on the remote side.

        *names* are copied from *desired*; *computed* values are set as given.
        """
        self.state.set_from_desired(desired, *names)
        for name, value in computed.items():
            setattr(self.state, name, value)
        for name in (*names, *computed):
            if name not in self.committed:
                self.committed.append(name)

    def fail(self, step, error):
        self.step = step
        self.error = error
        target = f"linode {self.state.id}" if self.state.id is not None else "new linode"
        logger.error(f"Step '{step}' failed for {target}: {error}")
        if self.committed:
            logger.error(f"Already committed: {', '.join(self.committed)}")
        return self

    def raise_for_error(self):
        if self.error is not None:
            raise self.error
