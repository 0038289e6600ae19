from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Allow running this file directly (e.g. `python jobs/refresh_shelter_cache.py`)
# by ensuring the project root is importable.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from api.services.shelter_cache_service import (
    ShelterCacheService,
    create_shelter_cache_service,
)
from config import Config
from logging_utils import configure_app_logging, get_logger
from support.errors import ShelterCacheError

logger = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Refresh, clear or inspect the cached shelter dataset"
    )
    mode = p.add_mutually_exclusive_group()
    mode.add_argument(
        "--info", action="store_true", help="Print cache status and exit"
    )
    mode.add_argument(
        "--clear", action="store_true", help="Empty both cache tiers"
    )
    mode.add_argument(
        "--full",
        action="store_true",
        help="Clear, then re-fetch every source (cache stays empty on failure)",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL for this run (e.g. DEBUG)",
    )
    return p.parse_args(argv)


def _print_info(service: ShelterCacheService) -> None:
    info = service.info()
    print(
        f"records={info.record_count} last_updated="
        f"{info.last_updated.isoformat() if info.last_updated else '-'} "
        f"age_hours={'-' if info.age_hours is None else f'{info.age_hours:.2f}'} "
        f"stale={info.is_stale} notes={info.notes or '-'}"
    )


def main(
    argv: list[str] | None = None, *, service: ShelterCacheService | None = None
) -> int:
    args = _parse_args(argv)

    # Allow per-run log override without needing env vars.
    if args.log_level:
        os.environ["LOG_LEVEL"] = str(args.log_level).upper()

    config = Config.as_dict()
    configure_app_logging(str(config["LOG_LEVEL"]))
    svc = service or create_shelter_cache_service(config)

    try:
        if args.info:
            _print_info(svc)
            return 0

        if args.clear:
            svc.clear_all()
            print("refresh_shelter_cache: caches cleared")
            return 0

        records = svc.full_update() if args.full else svc.refresh()
        logger.info(
            "refresh_shelter_cache complete | mode=%s records=%s",
            "full" if args.full else "refresh",
            len(records),
        )
        print(f"refresh_shelter_cache: complete | records={len(records)}")
        return 0
    except ShelterCacheError as e:
        logger.error("refresh_shelter_cache failed | err=%s", e)
        print(f"refresh_shelter_cache: failed | {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
