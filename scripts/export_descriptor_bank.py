#!/usr/bin/env python3
"""CLI for exporting person descriptors to a parquet bank."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from facematch.config import load_matching_config
from facematch.io_utils import setup_logging
from facematch.recognition.bank import DescriptorBankArtifacts, export_descriptor_bank
from facematch.store.documents import open_store


LOGGER = logging.getLogger("scripts.export_descriptor_bank")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export person descriptors to parquet")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("data/bank"),
        help="Directory where bank artifacts will be written",
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--store-root", type=Path, default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()

    config = load_matching_config(args.config, store_root=args.store_root)
    artifacts: DescriptorBankArtifacts = export_descriptor_bank(
        open_store(config.store_root),
        args.output_dir,
        descriptor_length=config.descriptor_length,
    )
    LOGGER.info("Descriptor bank: parquet=%s meta=%s", artifacts.parquet_path, artifacts.meta_json_path)


if __name__ == "__main__":
    main()
