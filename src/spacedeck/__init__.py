"""spacedeck: spaced-repetition scheduling and study-queue construction."""

__version__ = "0.1.0"
