#!/usr/bin/env python3
"""CLI for running face detection over many photos."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from facematch.config import load_matching_config
from facematch.errors import CLIENT_ERRORS
from facematch.io_utils import list_images, load_json, setup_logging
from facematch.lifecycle.bulk import bulk_detect
from facematch.lifecycle.faces import FaceRecognitionService
from facematch.recognition.source import FaceRecognitionSource
from facematch.store.documents import open_store


LOGGER = logging.getLogger("scripts.bulk_detect")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect faces for a batch of photos")
    inputs = parser.add_mutually_exclusive_group(required=True)
    inputs.add_argument(
        "--images-dir",
        type=Path,
        default=None,
        help="Directory of images named <photo_id>.jpg/.png",
    )
    inputs.add_argument(
        "--mapping",
        type=Path,
        default=None,
        help="JSON object mapping photo id -> image path",
    )
    parser.add_argument("--only-matched", action="store_true", help="Keep only faces with a person")
    parser.add_argument("--model", choices=["hog", "cnn"], default="hog")
    parser.add_argument("--upsample", type=int, default=1)
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--store-root", type=Path, default=None)
    parser.add_argument("--report", type=Path, default=None, help="Optional path for the JSON report")
    return parser.parse_args(argv)


def collect_images(args: argparse.Namespace) -> Dict[str, Path]:
    if args.images_dir is not None:
        return {path.stem: path for path in list_images(args.images_dir)}
    mapping = load_json(args.mapping)
    if not isinstance(mapping, dict):
        raise ValueError(f"{args.mapping} must contain a JSON object")
    base_dir = args.mapping.parent
    return {
        str(photo_id): (Path(path) if Path(path).is_absolute() else base_dir / path)
        for photo_id, path in mapping.items()
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()

    config = load_matching_config(args.config, store_root=args.store_root)
    service = FaceRecognitionService(open_store(config.store_root), config)
    images = collect_images(args)
    LOGGER.info("Bulk detection over %d images", len(images))

    try:
        with FaceRecognitionSource(model=args.model, upsample=args.upsample) as source:
            report = bulk_detect(service, source, images, only_matched=args.only_matched, show_progress=True)
    except CLIENT_ERRORS as exc:
        LOGGER.error("%s: %s", type(exc).__name__, exc)
        return 2

    payload = report.to_dict()
    if args.report is not None:
        args.report.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        LOGGER.info("Wrote bulk detection report to %s", args.report)
    print(json.dumps(payload, indent=2))
    return 0 if report.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
