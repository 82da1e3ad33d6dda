"""Click parameter types for mclipsync options."""
import click

from mclipsync.config import HybridPair
from mclipsync.main_logging import LEVELS


class HybridPairType(click.ParamType):
    """Parse GETTER=SETTER into a HybridPair, e.g. ":0=wayland-0"."""

    name = "getter=setter"

    def convert(self, value, param, ctx):
        """Split the value on "=" and reject empty halves."""
        if isinstance(value, HybridPair):
            return value
        getter, sep, setter = value.partition("=")
        if not sep or not getter or not setter:
            self.fail(f"{value!r} is not of the form GETTER=SETTER (e.g. :0=wayland-0)", param, ctx)
        return HybridPair(getter=getter, setter=setter)


class LogLevelType(click.Choice):
    """Choice of log level names, converted to numeric logging levels."""

    def __init__(self) -> None:
        super().__init__(list(LEVELS), case_sensitive=False)

    def convert(self, value, param, ctx):
        """Return the numeric level for a level name."""
        if isinstance(value, int):
            return value
        return LEVELS[super().convert(value, param, ctx).lower()]
