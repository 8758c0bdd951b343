"""Configuration store.

Holds the port descriptor: the set of configurable parameters, their allowed
values and the value currently selected for each. Pure data plus validation;
live application to an open port is delegated to a callback supplied by the
session.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .errors import ApplyFailed, InvalidValue, ParameterNotFound, PortError

logger = logging.getLogger(__name__)

PARAMETER_NAME = re.compile(r"^[A-Za-z0-9_.\-]+$")

# Live apply hook: (name, value) -> None, raises PortError on rejection
ApplyFn = Callable[[str, str], Awaitable[None]]


class ConfigurationParameter(BaseModel):
    """A named enum setting with one selected value among a fixed set."""

    model_config = ConfigDict(validate_assignment=True)

    label: str
    type: Literal["enum"] = "enum"
    values: list[str]
    selected: str

    @model_validator(mode="after")
    def _selected_is_allowed(self) -> ConfigurationParameter:
        if not self.values:
            raise ValueError("parameter must allow at least one value")
        if self.selected not in self.values:
            raise ValueError(f"selected value {self.selected!r} is not one of {self.values}")
        return self


class PortDescriptor(BaseModel):
    """Protocol name plus ordered configuration parameters (DESCRIBE payload)."""

    protocol: str
    configuration_parameters: dict[str, ConfigurationParameter]

    @field_validator("configuration_parameters")
    @classmethod
    def _valid_names(
        cls, parameters: dict[str, ConfigurationParameter]
    ) -> dict[str, ConfigurationParameter]:
        for name in parameters:
            if not PARAMETER_NAME.match(name):
                raise ValueError(f"invalid parameter name: {name!r}")
        return parameters


BAUDRATES = [
    "300", "600", "750",
    "1200", "2400", "4800", "9600",
    "19200", "31250", "38400", "57600", "74880",
    "115200", "230400", "250000", "460800", "500000", "921600",
    "1000000", "2000000",
]  # fmt: skip


def default_descriptor(protocol: str = "serial") -> PortDescriptor:
    """Build the descriptor a fresh session starts with."""
    return PortDescriptor(
        protocol=protocol,
        configuration_parameters={
            "baudrate": ConfigurationParameter(label="Baudrate", values=BAUDRATES, selected="9600"),
            "parity": ConfigurationParameter(
                label="Parity",
                values=["none", "even", "odd", "mark", "space"],
                selected="none",
            ),
            "bits": ConfigurationParameter(
                label="Data bits", values=["5", "6", "7", "8", "9"], selected="8"
            ),
            "stop_bits": ConfigurationParameter(
                label="Stop bits", values=["1", "1.5", "2"], selected="1"
            ),
            "rts": ConfigurationParameter(label="RTS", values=["on", "off"], selected="on"),
            "dtr": ConfigurationParameter(label="DTR", values=["on", "off"], selected="on"),
        },
    )


class ConfigurationStore:
    """Owns the descriptor and the only path that mutates it.

    Usage:
        store = ConfigurationStore(default_descriptor())
        await store.configure("baudrate", "115200")
        store.describe().configuration_parameters["baudrate"].selected
    """

    def __init__(self, descriptor: PortDescriptor) -> None:
        self._descriptor = descriptor

    def describe(self) -> PortDescriptor:
        """Return a snapshot; mutating it does not affect the store."""
        return self._descriptor.model_copy(deep=True)

    def snapshot(self) -> dict[str, str]:
        """Selected value of every parameter, in descriptor order."""
        return {
            name: parameter.selected
            for name, parameter in self._descriptor.configuration_parameters.items()
        }

    def selected(self, name: str) -> str:
        return self._lookup(name).selected

    async def configure(self, name: str, value: str, apply: ApplyFn | None = None) -> None:
        """Select a new value, applying it live when an apply hook is given.

        Raises:
            ParameterNotFound: unknown parameter name
            InvalidValue: value not in the parameter's allowed set
            ApplyFailed: the hook rejected the value; the previous value is restored
        """
        parameter = self._lookup(name)
        if value not in parameter.values:
            raise InvalidValue(name, value)

        previous = parameter.selected
        parameter.selected = value

        if apply is None:
            logger.debug("Configured %s=%s", name, value)
            return

        try:
            await apply(name, value)
        except PortError as e:
            parameter.selected = previous
            logger.warning("Could not apply %s=%s, kept %s: %s", name, value, previous, e)
            raise ApplyFailed(str(e)) from e
        except BaseException:
            parameter.selected = previous
            raise

        logger.debug("Configured %s=%s (applied live)", name, value)

    def _lookup(self, name: str) -> ConfigurationParameter:
        parameter = self._descriptor.configuration_parameters.get(name)
        if parameter is None:
            raise ParameterNotFound(name)
        return parameter
