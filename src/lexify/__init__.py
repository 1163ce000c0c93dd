"""Lexify: vocabulary practice driven by FSRS spaced repetition."""

__version__ = "0.4.0"
