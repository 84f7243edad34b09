"""Validation package."""

from moneyfx.validation.validator import ConversionValidator

__all__ = ["ConversionValidator"]
