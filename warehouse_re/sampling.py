"""Record sampling policy.

Decides how many rows are pulled from a table before schema inference.
Sampling is deterministic first-N: the helpers issue ``LIMIT n`` without
ordering or randomization.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .errors import SamplingSettingsError


class SamplingMode(str, Enum):
    """Supported record sampling modes."""
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


@dataclass(frozen=True)
class SamplingSettings:
    """Record sampling configuration for one run.

    Attributes:
        mode: Which of the two values is active
        absolute: Fixed number of rows per table
        relative: Percentage of each table's rows, in [0, 100]
    """
    mode: SamplingMode = SamplingMode.ABSOLUTE
    absolute: int = 1000
    relative: float = 1.0

    def __post_init__(self):
        try:
            mode = SamplingMode(self.mode)
        except ValueError:
            raise SamplingSettingsError(
                f"Unknown sampling mode: {self.mode!r}",
                details={"mode": self.mode},
            )
        object.__setattr__(self, "mode", mode)

        if mode == SamplingMode.ABSOLUTE:
            if isinstance(self.absolute, bool) or not isinstance(self.absolute, int) or self.absolute < 0:
                raise SamplingSettingsError(
                    "Absolute sampling requires a non-negative integer row count",
                    details={"absolute": self.absolute},
                )
        else:
            if isinstance(self.relative, bool) or not isinstance(self.relative, (int, float)) \
                    or not 0 <= self.relative <= 100:
                raise SamplingSettingsError(
                    "Relative sampling requires a percentage between 0 and 100",
                    details={"relative": self.relative},
                )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SamplingSettings":
        """Build settings from the host's ``recordSamplingSettings`` mapping.

        The host shape is ``{"active": "absolute", "absolute": {"value": 1000},
        "relative": {"value": 1}}``. Missing parts fall back to the configured
        defaults.
        """
        from .config import settings

        data = data or {}
        absolute = (data.get("absolute") or {}).get("value", settings.sampling_absolute_value)
        relative = (data.get("relative") or {}).get("value", settings.sampling_relative_value)
        return cls(
            mode=data.get("active", settings.sampling_mode),
            absolute=absolute,
            relative=relative,
        )

    @classmethod
    def from_settings(cls) -> "SamplingSettings":
        """Build settings from the environment configuration."""
        from .config import settings

        return cls(
            mode=settings.sampling_mode,
            absolute=settings.sampling_absolute_value,
            relative=settings.sampling_relative_value,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Render settings back into the host shape."""
        return {
            "active": self.mode.value,
            "absolute": {"value": self.absolute},
            "relative": {"value": self.relative},
        }


def compute_sample_size(total_rows: int, settings: SamplingSettings) -> int:
    """Compute how many rows to fetch from a table.

    Args:
        total_rows: Number of rows in the table
        settings: Active sampling settings

    Returns:
        Absolute mode: the configured count clamped to ``[0, total_rows]``.
        Relative mode: ``total_rows * percent / 100`` rounded half up.
    """
    total_rows = max(int(total_rows or 0), 0)

    if settings.mode == SamplingMode.ABSOLUTE:
        return min(max(settings.absolute, 0), total_rows)

    size = math.floor(total_rows * settings.relative / 100 + 0.5)
    return min(max(size, 0), total_rows)
