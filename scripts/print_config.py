from __future__ import annotations

import argparse
import dataclasses
import pprint

from smc_signal_bot.config import default_config, load_config


def main():
    p = argparse.ArgumentParser(description="Print the effective analysis settings for a config")
    p.add_argument("--config", help="Path to YAML config")
    args = p.parse_args()

    cfg = load_config(args.config) if args.config else default_config()

    print("SOURCES (in fallback order):")
    for src in cfg.provider.sources:
        pprint.pprint(dataclasses.asdict(src))
    print("\nANALYSIS:")
    pprint.pprint(dataclasses.asdict(cfg.analysis))
    print("\nRISK:")
    pprint.pprint(dataclasses.asdict(cfg.risk))


if __name__ == "__main__":
    main()
