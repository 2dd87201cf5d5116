"""Command line helpers for inspecting EggWisdom reward rules."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from eggwisdom.config import EggWisdomConfig
from eggwisdom.logging import LoggingOptions, configure_logging
from eggwisdom.rewards import (
    BOOST_TIERS,
    SUPPLY_TIERS,
    Amount,
    get_distribution,
    select_boost_tier,
    split_payment,
    system_clock,
)

SUCCESS = "✅"
STEP = "🚀"
WARN = "⚠️"
ERROR = "❌"


def _print_header(title: str) -> None:
    print(f"{STEP} {title}")


def _print_json(data: object) -> None:
    print(json.dumps(data, sort_keys=True, indent=2))


def _cmd_tiers(args: argparse.Namespace) -> int:
    _print_header("Reward tier tables")
    _print_json(
        {
            "supply_tiers": [tier.to_dict() for tier in SUPPLY_TIERS],
            "boost_tiers": [tier.to_dict() for tier in BOOST_TIERS],
        }
    )
    return 0


def _cmd_distribution(args: argparse.Namespace) -> int:
    try:
        supply = Amount.of(args.supply)
        shares = get_distribution(supply)
        _print_header(f"Distribution at total supply {supply}")
        _print_json(
            {
                "total_supply": str(supply),
                "platform_share": str(shares.platform_share),
                "uploader_share": str(shares.uploader_share),
            }
        )
        return 0
    except Exception as exc:  # noqa: BLE001
        print(f"{ERROR} Distribution lookup failed: {exc}")
        return 1


def _cmd_split(args: argparse.Namespace) -> int:
    try:
        payment = Amount.of(args.payment)
        supply = Amount.of(args.supply)
        split = split_payment(payment, supply)
        _print_header(f"Splitting {payment} at total supply {supply}")
        _print_json(
            {
                "payment": str(payment),
                "platform_amount": str(split.platform_amount),
                "uploader_amount": str(split.uploader_amount),
                "platform_share": str(split.shares.platform_share),
                "uploader_share": str(split.shares.uploader_share),
            }
        )
        return 0
    except Exception as exc:  # noqa: BLE001
        print(f"{ERROR} Split failed: {exc}")
        return 1


def _cmd_boost_quote(args: argparse.Namespace) -> int:
    try:
        amount = Amount.of(args.amount)
        now = args.now if args.now is not None else system_clock()
    except Exception as exc:  # noqa: BLE001
        print(f"{ERROR} Boost quote failed: {exc}")
        return 1

    tier = select_boost_tier(amount)
    if tier is None:
        print(f"{WARN} {amount} is below the minimum boost burn {BOOST_TIERS[-1].minimum_burn}")
        return 2

    # The multiplier actually paid depends on the configured scheme.
    multiplier = args.cfg.boost.resolved_flat_multiplier() or tier.reward_multiplier
    _print_header(f"Burning {amount} would select")
    _print_json(
        {
            "tier": tier.to_dict(),
            "multiplier_scheme": args.cfg.boost.multiplier_scheme,
            "multiplier": str(multiplier),
            "burn_time": now,
            "expiration": now + tier.duration_seconds,
        }
    )
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    try:
        args.cfg.validate()
    except Exception as exc:  # noqa: BLE001
        print(f"{ERROR} Config invalid: {exc}")
        return 1
    _print_header("Effective configuration")
    _print_json(args.cfg.to_dict())
    return 0


def _load_config(path: str | None) -> EggWisdomConfig:
    config_path = Path(path) if path else None
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Path not found: {config_path}")
    return EggWisdomConfig.load(config_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="EggWisdom reward rules CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", help="Path to a JSON, TOML or YAML config file")
    parser.add_argument("--log-level", help="Log level for the eggwisdom loggers (overrides config)")
    parser.add_argument("--log-format", choices=["text", "json"], help="Log output format (overrides config)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_tiers = sub.add_parser("tiers", help="Show the supply and boost tier tables")
    p_tiers.set_defaults(func=_cmd_tiers)

    p_dist = sub.add_parser("distribution", help="Show the platform/uploader split for a total supply")
    p_dist.add_argument("--supply", required=True, help="Current total token supply")
    p_dist.set_defaults(func=_cmd_distribution)

    p_split = sub.add_parser("split", help="Split a payment between platform and uploader")
    p_split.add_argument("--payment", required=True, help="Payment amount in the base currency")
    p_split.add_argument("--supply", required=True, help="Current total token supply")
    p_split.set_defaults(func=_cmd_split)

    p_quote = sub.add_parser("boost-quote", help="Show which boost tier a burn would select")
    p_quote.add_argument("--amount", required=True, help="Tokens to burn")
    p_quote.add_argument("--now", type=int, help="Burn time in unix seconds (defaults to now)")
    p_quote.set_defaults(func=_cmd_boost_quote)

    p_config = sub.add_parser("config", help="Print the effective configuration")
    p_config.add_argument(
        "--config",
        dest="config",
        default=argparse.SUPPRESS,
        help="Path to a JSON, TOML or YAML config file",
    )
    p_config.set_defaults(func=_cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        args.cfg = _load_config(args.config)
    except Exception as exc:  # noqa: BLE001
        print(f"{ERROR} Config load failed: {exc}")
        return 1

    options = LoggingOptions.from_config(args.cfg.logging)
    configure_logging(options.with_overrides(level=args.log_level, format=args.log_format))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
