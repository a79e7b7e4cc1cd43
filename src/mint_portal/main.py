"""Process entrypoint for ``python -m mint_portal`` and the ``mint-portal`` script."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from mint_portal.adapters.snapshot import SnapshotLoadError
from mint_portal.config import ConfigLoadError, ConfigValidationError
from mint_portal.domain.errors import PortalError

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    RELEASE_REJECTED = 1
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 4


# Failures caused by the operator's input (config, snapshot, ids) rather than a bug.
_INPUT_ERRORS: Final[tuple[type[BaseException], ...]] = (
    ConfigLoadError,
    ConfigValidationError,
    SnapshotLoadError,
    PortalError,
    OSError,
    ValueError,
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and map its outcome onto ``ExitCode``."""

    from mint_portal.ui.cli import run_cli

    try:
        code: object = run_cli(argv)
    except SystemExit as exc:
        code = exc.code
    except Exception as exc:  # noqa: BLE001 - process boundary.
        return int(_report_failure(exc))
    return int(_as_exit_code(code))


def _as_exit_code(code: object) -> ExitCode:
    if code is None:
        return ExitCode.SUCCESS
    if isinstance(code, int):
        try:
            return ExitCode(code)
        except ValueError:
            return ExitCode.INTERNAL_ERROR
    message = str(code).strip()
    if message:
        print(message, file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _report_failure(exc: Exception) -> ExitCode:
    if any(isinstance(item, _INPUT_ERRORS) for item in _causes(exc)):
        detail = str(exc).strip() or type(exc).__name__
        print(f"error: {detail}", file=sys.stderr)
        return ExitCode.CONFIG_ERROR
    traceback.print_exception(exc, file=sys.stderr)
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and its explicit/implicit causes, stopping at cycles."""

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )


__all__ = ["ExitCode", "cli_entrypoint"]
