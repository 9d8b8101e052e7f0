"""Settings subcommand: print resolved settings as YAML.

Usage::

    pgcrate -c config.yaml settings
    pgcrate -c config.yaml settings --instance analytics --cluster replica
    pgcrate -c config.yaml settings --global
"""

from __future__ import annotations

import sys

import yaml

from pgcrate.core.result import attempt


def _lookup(config, args):
    registry = config.build_registry()
    if args.global_only:
        return registry.settings(args.instance)
    return registry.cluster(args.cluster, instance=args.instance)


def run_settings(config, args) -> None:
    """Resolve and print one cluster's (or the instance's) settings."""
    result = attempt(_lookup, config, args)
    if not result.ok:
        sys.stderr.write(f"pgcrate: {result.kind}: {result.error}\n")
        sys.exit(1)

    tree = result.value
    if tree is None:
        what = f"instance '{args.instance}'"
        if not args.global_only:
            what = f"cluster '{args.cluster or '<default>'}' of {what}"
        sys.stderr.write(f"pgcrate: no settings for {what}\n")
        sys.exit(1)

    yaml.safe_dump(tree, sys.stdout, default_flow_style=False, sort_keys=True)
