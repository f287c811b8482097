"""versereel: narrated vertical videos, one scripture chapter per run."""

__version__ = "0.1.0"
