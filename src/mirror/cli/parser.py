"""
Command-line argument parser configuration.

The sync process takes a single flag; everything else (connection,
collections, batch size, logging, metrics) comes from the environment.
"""

import argparse


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for mirror-sync.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="mirror-sync",
        description="Keep an anonymized mirror of the customers collection in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Resume from the stored checkpoint (or run a first full sync), then tail changes
  DB_URI=mongodb://localhost:27017/shop mirror-sync

  # Rebuild the mirror from scratch and exit
  DB_URI=mongodb://localhost:27017/shop mirror-sync --full-reindex

  # Read the connection string from Vault instead of DB_URI
  VAULT_ADDR=http://localhost:8200 VAULT_TOKEN=... mirror-sync
        """
    )

    parser.add_argument(
        '--full-reindex',
        action='store_true',
        help='Clear the checkpoint, copy every source record, then exit'
    )

    return parser
