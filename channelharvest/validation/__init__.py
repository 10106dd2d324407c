"""Stream reachability validation."""

from channelharvest.validation.stream_probe import (
    Confidence,
    ProbeMethod,
    ProbeResult,
    StreamValidator,
)

__all__ = ["Confidence", "ProbeMethod", "ProbeResult", "StreamValidator"]
