from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from .config import default_config, load_config
from .runner import SignalScanner


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        stream=sys.stderr,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="SMC Signal Bot - multi-TF market structure signals")
    p.add_argument("--config", help="Path to YAML config (defaults are used when omitted)")
    p.add_argument("--symbol", action="append", default=[], help="Symbol to analyze (repeatable)")
    args = p.parse_args(argv)

    cfg = load_config(args.config) if args.config else default_config()
    _setup_logging(cfg.app.log_level)

    scanner = SignalScanner(cfg)

    async def _run():
        try:
            return await scanner.scan(args.symbol or None)
        finally:
            # Close shared REST sessions cleanly.
            await scanner.close()

    try:
        results = asyncio.run(_run())
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        logging.getLogger("main").exception("fatal err=%s", e)
        return 1

    for res in results:
        print(json.dumps(res.to_dict(), ensure_ascii=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
