"""
bughawk config - Show and change CLI configuration.
"""

import sys

from bughawk.lib.config import (
    CONFIG_KEYS,
    get_config_path,
    load_config,
    reset_config,
    set_config_value,
)


def cmd_config_list(args) -> int:
    config = load_config()
    print(f"Config file: {get_config_path()}")
    for key, value in config.to_dict().items():
        print(f"  {key:<16} {value if value is not None else '-'}")
    return 0


def cmd_config_get(args) -> int:
    if args.key not in CONFIG_KEYS:
        print(f"ERROR: Unknown config key '{args.key}'", file=sys.stderr)
        return 1
    value = load_config().to_dict()[args.key]
    print(value if value is not None else "")
    return 0


def cmd_config_set(args) -> int:
    try:
        set_config_value(args.key, args.value)
    except ValueError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    print(f"Set {args.key} = {args.value}")
    return 0


def cmd_config_reset(args) -> int:
    reset_config()
    print("Configuration reset to defaults.")
    return 0
