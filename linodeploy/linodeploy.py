#!/usr/bin/env python3
"""Linode instance provisioning: CLI entrypoint."""

import argparse

from linodeploy.commands.instance import register_instance_command
from linodeploy.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Provision and reconcile a Linode instance")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show API calls and pending jobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_instance_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
