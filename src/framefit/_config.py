"""Missing-value configuration for the framefit package.

Controls what happens to rows with missing values when a formula is
expanded into design matrices, and what ``missing=`` policy is handed
to the statsmodels families.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_na_action`.
    2. The ``FRAMEFIT_NA_ACTION`` environment variable.
    3. The default, ``"drop"``.

Valid action names are ``"drop"`` and ``"raise"`` (case-insensitive).

Examples:
    Reject incomplete rows globally from the shell::

        export FRAMEFIT_NA_ACTION=raise

    Reject incomplete rows programmatically::

        import framefit
        framefit.set_na_action("raise")

    Re-enable the default resolution order::

        framefit.set_na_action("auto")
"""

from __future__ import annotations

import os

_VALID_ACTIONS = {"drop", "raise", "auto"}

_DEFAULT_ACTION = "drop"

# Sentinel indicating "no programmatic override has been set".
_na_action_override: str | None = None


def get_na_action() -> str:
    """Return the active missing-value action (``"drop"`` or ``"raise"``).

    Resolution order:
        1. Value set by :func:`set_na_action` (unless ``"auto"``).
        2. ``FRAMEFIT_NA_ACTION`` environment variable.
        3. ``"drop"``.

    Returns:
        ``"drop"`` or ``"raise"``.
    """
    # 1. Programmatic override
    if _na_action_override is not None and _na_action_override != "auto":
        return _na_action_override

    # 2. Environment variable
    env = os.environ.get("FRAMEFIT_NA_ACTION", "").strip().lower()
    if env in ("drop", "raise"):
        return env

    # 3. Default
    return _DEFAULT_ACTION


def set_na_action(name: str) -> None:
    """Override the missing-value action.

    Args:
        name: One of ``"drop"``, ``"raise"``, or ``"auto"``
            (case-insensitive).  ``"auto"`` restores the default
            resolution order.

    Raises:
        ValueError: If *name* is not a recognised action.
    """
    global _na_action_override
    normalised = name.strip().lower()
    if normalised not in _VALID_ACTIONS:
        raise ValueError(
            f"Unknown NA action '{name}'. Choose from: {sorted(_VALID_ACTIONS)}"
        )
    _na_action_override = normalised
