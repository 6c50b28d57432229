#!/usr/bin/env python3
"""CLI for detect / match / assign operations on photo face records."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from facematch.config import MatchingConfig, load_matching_config
from facematch.errors import CLIENT_ERRORS
from facematch.io_utils import load_json, setup_logging
from facematch.lifecycle.faces import FaceRecognitionService
from facematch.lifecycle.person_descriptor import extract_person_descriptor
from facematch.lifecycle.suggestions import suggest_people
from facematch.recognition.bank import load_descriptor_bank
from facematch.recognition.source import FaceRecognitionSource
from facematch.store.documents import open_store


LOGGER = logging.getLogger("scripts.face_ops")


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Matching config YAML (defaults to configs/matching.yaml when present)",
    )
    parser.add_argument(
        "--store-root",
        type=Path,
        default=None,
        help="Override document store directory from config",
    )


def _add_source_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--model", choices=["hog", "cnn"], default="hog", help="Face locator model")
    parser.add_argument("--upsample", type=int, default=1, help="Image upsampling passes for small faces")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage face records of photos")
    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", help="Store detection results from a JSON file")
    detect.add_argument("photo_id")
    detect.add_argument("faces_json", type=Path, help="JSON list of {descriptor, box, landmarks}")
    detect.add_argument("--only-matched", action="store_true", help="Keep only faces with a person")
    _add_common(detect)

    detect_image = sub.add_parser("detect-image", help="Run the face detector on an image and store results")
    detect_image.add_argument("photo_id")
    detect_image.add_argument("image", type=Path)
    detect_image.add_argument("--only-matched", action="store_true")
    _add_source_args(detect_image)
    _add_common(detect_image)

    match = sub.add_parser("match", help="Match a photo's faces against people")
    match.add_argument("photo_id")
    match.add_argument("--threshold", type=float, default=None, help="Distance threshold override")
    _add_common(match)

    assign = sub.add_parser("assign", help="Manually assign or clear one face")
    assign.add_argument("photo_id")
    assign.add_argument("face_index", type=int)
    target = assign.add_mutually_exclusive_group(required=True)
    target.add_argument("--person", dest="person_id", default=None)
    target.add_argument("--clear", action="store_true", help="Remove the face's person")
    _add_common(assign)

    extract = sub.add_parser("extract-person", help="Store a person's descriptor from a profile image")
    extract.add_argument("person_id")
    extract.add_argument("image", type=Path)
    extract.add_argument("--replace", action="store_true", help="Overwrite an existing descriptor")
    _add_source_args(extract)
    _add_common(extract)

    suggest = sub.add_parser("suggest", help="List the closest people for one face")
    suggest.add_argument("photo_id")
    suggest.add_argument("face_index", type=int)
    suggest.add_argument("--k", type=int, default=3)
    suggest.add_argument("--bank", type=Path, default=None, help="descriptors.parquet to use instead of the store")
    _add_common(suggest)

    show = sub.add_parser("show", help="Print the current match of every face")
    show.add_argument("photo_id")
    _add_common(show)

    return parser


def resolve_config(args: argparse.Namespace) -> MatchingConfig:
    """CLI flags override config file values."""
    return load_matching_config(
        args.config,
        store_root=args.store_root,
    )


def _source(args: argparse.Namespace) -> FaceRecognitionSource:
    return FaceRecognitionSource(model=args.model, upsample=args.upsample)


def run(args: argparse.Namespace) -> Any:
    config = resolve_config(args)
    store = open_store(config.store_root)
    service = FaceRecognitionService(store, config)

    if args.command == "detect":
        faces = load_json(args.faces_json)
        return service.detect(args.photo_id, faces, only_matched=args.only_matched).to_dict()
    if args.command == "detect-image":
        with _source(args) as source:
            return service.detect_from_image(
                args.photo_id, args.image, source, only_matched=args.only_matched
            ).to_dict()
    if args.command == "match":
        return service.match(args.photo_id, threshold=args.threshold).to_dict()
    if args.command == "assign":
        person_id = None if args.clear else args.person_id
        return service.assign(args.photo_id, args.face_index, person_id).to_dict()
    if args.command == "extract-person":
        with _source(args) as source:
            return extract_person_descriptor(
                store,
                args.person_id,
                args.image,
                source,
                replace=args.replace,
                descriptor_length=config.descriptor_length,
            ).to_dict()
    if args.command == "suggest":
        bank = load_descriptor_bank(args.bank, config.descriptor_length) if args.bank else None
        suggestions = suggest_people(
            store,
            args.photo_id,
            args.face_index,
            k=args.k,
            bank=bank,
            descriptor_length=config.descriptor_length,
        )
        return [s.to_dict() for s in suggestions]
    if args.command == "show":
        return [m.to_dict() for m in service.face_matches(args.photo_id)]
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        result = run(args)
    except CLIENT_ERRORS as exc:
        LOGGER.error("%s: %s", type(exc).__name__, exc)
        return 2
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
