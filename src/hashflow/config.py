"""Engine configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass
class EngineConfig:
    """Options shared by every render of a compiled template.

    Attributes:
        line_prefix: Optional marker allowed before a directive, e.g. ``--``
            so directives can live inside SQL comments (``-- #if :id > 0``)
        default_delimiter: Joins ``#for`` iterations when no delimiter is given
        interpolate: Use ``interpolate_body`` as the loop body formatter
    """

    line_prefix: str | None = None
    default_delimiter: str = ", "
    interpolate: bool = False

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create config from environment variables.

        Reads HASHFLOW_LINE_PREFIX, HASHFLOW_DEFAULT_DELIMITER and
        HASHFLOW_INTERPOLATE (1/true/yes/on). Unset variables keep defaults.
        """
        config = cls()

        line_prefix = os.environ.get("HASHFLOW_LINE_PREFIX")
        if line_prefix:
            config.line_prefix = line_prefix

        delimiter = os.environ.get("HASHFLOW_DEFAULT_DELIMITER")
        if delimiter is not None:
            config.default_delimiter = delimiter

        interpolate = os.environ.get("HASHFLOW_INTERPOLATE")
        if interpolate is not None:
            config.interpolate = interpolate.strip().lower() in TRUTHY

        return config
