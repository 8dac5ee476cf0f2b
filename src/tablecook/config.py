"""Runtime settings.

TableCook has very few knobs, they can be provided through
environment variables and overridden by the command line:

* ``TABLECOOK_PLOTS_DIR``: directory where charts are saved (``plots``).
* ``TABLECOOK_DISPLAY_ROWS``: how many rows are shown when printing data (``20``).
* ``TABLECOOK_LOG_LEVEL``: logging level used by the command line (``WARNING``).
"""

import dataclasses
import os
from typing import Mapping, Self

ENV_PREFIX = "TABLECOOK_"


@dataclasses.dataclass
class Settings:
    """Process wide settings."""

    plots_dir: str = "plots"
    display_rows: int = 20
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Self:
        """Load the settings from ``TABLECOOK_*`` environment variables.

        Variables that are not set keep the default value.

        >>> Settings.from_env({"TABLECOOK_DISPLAY_ROWS": "5"}).display_rows
        5
        """
        environ = os.environ if environ is None else environ
        values = {}
        for field in dataclasses.fields(cls):
            raw = environ.get(ENV_PREFIX + field.name.upper())
            if raw is None:
                continue
            try:
                values[field.name] = field.type(raw)
            except ValueError:
                raise ValueError(
                    f"Invalid value for {ENV_PREFIX + field.name.upper()}: {raw!r}"
                ) from None
        settings = cls(**values)
        settings.log_level = settings.log_level.upper()
        return settings


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
