"""Exception types raised by the twin engine and its stores."""

from __future__ import annotations

from collections.abc import Sequence


class CropTwinError(Exception):
	"""Base class for all twin engine failures."""


class UnsupportedCropType(CropTwinError, ValueError):
	"""Raised when a crop type has no registered growth parameters."""

	def __init__(self, crop_type: object):
		self.crop_type = crop_type
		super().__init__(f"Unsupported crop type: {crop_type}")


class TwinNotFound(CropTwinError, LookupError):
	"""Raised when a twin id does not resolve in the store."""

	def __init__(self, twin_id: str):
		self.twin_id = twin_id
		super().__init__(f"Farm twin {twin_id} not found")


class ValidationFailed(CropTwinError, ValueError):
	"""Raised with every field violation found, never just the first."""

	def __init__(self, errors: Sequence[str], warnings: Sequence[str] = ()):
		self.errors = list(errors)
		self.warnings = list(warnings)
		super().__init__("; ".join(self.errors) or "validation failed")


class PersistenceFailure(CropTwinError, RuntimeError):
	"""Raised when the storage collaborator fails."""


class ConcurrencyConflict(PersistenceFailure):
	"""Raised when a write is based on a stale twin version."""

	def __init__(self, twin_id: str, expected_version: int, actual_version: int | None = None):
		self.twin_id = twin_id
		self.expected_version = expected_version
		self.actual_version = actual_version
		detail = f"Farm twin {twin_id} was modified concurrently (expected version {expected_version}"
		if actual_version is not None:
			detail += f", found {actual_version}"
		super().__init__(detail + ")")
