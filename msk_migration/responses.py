"""Result types for migration operations."""

from __future__ import annotations

from collections import Counter
from typing import Any


def create_success_result(message: str, **fields: Any) -> dict[str, Any]:
    """Create a success result dictionary."""
    return {'status': 'success', 'message': message, **fields}


def create_skipped_result(message: str, **fields: Any) -> dict[str, Any]:
    """Create a skipped result dictionary."""
    return {'status': 'skipped', 'message': message, **fields}


def create_failure_result(
    message: str,
    error: str | None = None,
    **fields: Any,
) -> dict[str, Any]:
    """Create a failure result dictionary."""
    result: dict[str, Any] = {'status': 'failure', 'message': message}
    if error:
        result['error'] = error
    result.update(fields)
    return result


def summarize_results(results: list[dict[str, Any]]) -> dict[str, int]:
    """Count results by status.

    Always reports success, skipped and failure counters, plus a total, so
    callers can print a summary without checking for missing keys.
    """
    counts = Counter(result.get('status', 'unknown') for result in results)
    summary = {
        'total': len(results),
        'success': counts.pop('success', 0),
        'skipped': counts.pop('skipped', 0),
        'failure': counts.pop('failure', 0),
    }
    summary.update(counts)
    return summary
