"""Module entrypoint for ``python -m mint_portal``."""

from __future__ import annotations

from mint_portal.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
