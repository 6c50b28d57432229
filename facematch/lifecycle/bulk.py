"""Bulk detection over many photos with per-photo failure reporting."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from tqdm import tqdm

from facematch.errors import FaceMatchError, ValidationError
from facematch.lifecycle.faces import FaceRecognitionService

LOGGER = logging.getLogger("facematch.lifecycle.bulk")


@dataclass
class BulkDetectReport:
    total: int
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def record_failure(self, photo_id: str, message: str) -> None:
        self.failed += 1
        self.errors.append({"photoId": photo_id, "error": message})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": list(self.errors),
        }


def bulk_detect(
    service: FaceRecognitionService,
    source: Any,
    images: Mapping[str, Union[Path, str]],
    only_matched: bool = False,
    show_progress: bool = False,
) -> BulkDetectReport:
    """Run ``detect_from_image`` for every photo id -> image path entry.

    A failing photo is recorded in the report and the batch continues.
    """
    if not images:
        raise ValidationError("Photo IDs are required")
    report = BulkDetectReport(total=len(images))
    items = tqdm(images.items(), total=len(images), desc="detect", disable=not show_progress)
    for photo_id, image_path in items:
        report.processed += 1
        try:
            service.detect_from_image(photo_id, Path(image_path), source, only_matched=only_matched)
        except FaceMatchError as exc:
            LOGGER.warning("Photo %s: detection failed: %s", photo_id, exc)
            report.record_failure(str(photo_id), str(exc))
            continue
        except Exception as exc:
            LOGGER.exception("Photo %s: unexpected error during detection", photo_id)
            report.record_failure(str(photo_id), str(exc) or type(exc).__name__)
            continue
        report.succeeded += 1
    LOGGER.info(
        "Bulk detection: %d/%d photos succeeded, %d failed",
        report.succeeded,
        report.total,
        report.failed,
    )
    return report
