"""Bounded walker turning arbitrary analysis results into labeled field trees.

Analysis results come from an uncontrolled external AI process, so every scan
is bounded by depth, total field count and a wall-clock deadline, and no
failure ever escapes to the caller: the worst case is an empty result.
"""

import asyncio
import time
from collections.abc import Mapping
from typing import Any, Callable, List, Optional

from dealmate.core.config import settings
from dealmate.schemas.scanner import DataSection, ScannedField
from dealmate.services.scanner.field_metadata import FieldMetadataService
from dealmate.services.scanner.sections import group_into_sections
from dealmate.services.scanner.values import is_simple_object
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ScanTimeout(Exception):
    """Raised internally when a scan runs past its deadline."""


class _ScanBudget:
    """Field count and deadline shared by every level of one scan."""

    def __init__(self, max_fields: int, deadline: float, clock: Callable[[], float]):
        self.max_fields = max_fields
        self.deadline = deadline
        self.clock = clock
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.max_fields

    def check_deadline(self) -> None:
        if self.clock() > self.deadline:
            raise ScanTimeout()


class ResultScanner:
    """Scans analysis results into ``ScannedField`` forests.

    Top-level keys sit at depth 0. Children are populated only while
    ``depth + 1 < max_depth``, so at most ``max_depth`` levels are emitted.
    ``max_fields`` counts every emitted node, nested ones included.
    """

    def __init__(
        self,
        max_depth: Optional[int] = None,
        max_fields: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_depth = max_depth if max_depth is not None else settings.scanner.max_depth
        self.max_fields = max_fields if max_fields is not None else settings.scanner.max_fields
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.scanner.timeout_seconds
        )
        self._clock = clock
        self.metadata = FieldMetadataService

    def scan(self, data: Any, base_path: str = "") -> List[ScannedField]:
        """Scan ``data`` synchronously. Never raises."""
        try:
            budget = _ScanBudget(self.max_fields, self._clock() + self.timeout_seconds, self._clock)
            return self._scan_level(data, base_path, 0, budget)
        except ScanTimeout:
            LOGGER.warning(
                "Dynamic scanning timed out, returning empty results",
                extra={"timeout_seconds": self.timeout_seconds},
            )
            return []
        except Exception as e:
            LOGGER.error(f"Error during dynamic scanning: {e}", exc_info=True)
            return []

    async def scan_safely(self, data: Any, base_path: str = "") -> List[ScannedField]:
        """Race the scan against a timer; the timer path resolves to ``[]``."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.scan, data, base_path),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            LOGGER.warning("Dynamic scanning timed out, returning empty results")
            return []
        except Exception as e:
            LOGGER.error(f"Error during dynamic scanning: {e}", exc_info=True)
            return []

    async def scan_into_sections(self, data: Any) -> List[DataSection]:
        fields = await self.scan_safely(data)
        return group_into_sections(fields, max_fields=self.max_fields)

    def _scan_level(
        self,
        data: Any,
        base_path: str,
        depth: int,
        budget: _ScanBudget,
    ) -> List[ScannedField]:
        fields: List[ScannedField] = []

        if not isinstance(data, Mapping) or depth >= self.max_depth or budget.exhausted:
            return fields

        for key in list(data.keys()):
            if budget.exhausted:
                break
            budget.check_deadline()

            current_path = f"{base_path}.{key}" if base_path else str(key)
            try:
                value = data[key]
                field = self.metadata.describe_field(key, value, current_path)
                budget.used += 1

                if (
                    field.is_object
                    and depth + 1 < self.max_depth
                    and not is_simple_object(value)
                ):
                    field.children = self._scan_level(value, current_path, depth + 1, budget)
            except ScanTimeout:
                raise
            except Exception as e:
                LOGGER.warning(f"Error processing field {key!r}: {e}")
                continue

            fields.append(field)

        return fields


_default_scanner: Optional[ResultScanner] = None


def get_result_scanner() -> ResultScanner:
    """Module-level scanner configured from settings."""
    global _default_scanner
    if _default_scanner is None:
        _default_scanner = ResultScanner()
    return _default_scanner


def scan(data: Any, base_path: str = "") -> List[ScannedField]:
    return get_result_scanner().scan(data, base_path)
