"""Descriptor bank export/load utilities."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import numpy as np
import pandas as pd

from facematch.io_utils import dump_json, ensure_dir
from facematch.recognition.descriptor import normalize_descriptor
from facematch.store.documents import DocumentStore
from facematch.types import DESCRIPTOR_LENGTH, format_timestamp

LOGGER = logging.getLogger("facematch.recognition.bank")


@dataclass
class DescriptorBankArtifacts:
    parquet_path: Path
    meta_json_path: Path


def export_descriptor_bank(
    store: DocumentStore,
    output_dir: Path,
    descriptor_length: int = DESCRIPTOR_LENGTH,
) -> DescriptorBankArtifacts:
    """Write every usable person descriptor to ``descriptors.parquet``."""
    ensure_dir(output_dir)
    rows: List[Dict] = []
    skipped: List[str] = []
    for person in store.people_with_descriptors():
        descriptor = normalize_descriptor(person.descriptor, descriptor_length)
        if descriptor is None:
            skipped.append(person.id)
            continue
        rows.append(
            {
                "person_id": person.id,
                "descriptor": descriptor.tolist(),
                "extracted_at": format_timestamp(person.extracted_at),
                "model_version": person.model_version,
            }
        )

    df = pd.DataFrame(rows, columns=["person_id", "descriptor", "extracted_at", "model_version"])
    parquet_path = output_dir / "descriptors.parquet"
    meta_json_path = output_dir / "descriptors_meta.json"
    df.to_parquet(parquet_path, index=False)

    metadata = {
        "person_ids": df["person_id"].tolist(),
        "num_people": len(df),
        "descriptor_length": descriptor_length,
        "skipped": skipped,
    }
    dump_json(meta_json_path, metadata)

    if skipped:
        LOGGER.warning("Skipped %d people with malformed descriptors", len(skipped))
    LOGGER.info("Descriptor bank exported: %d people", len(df))
    return DescriptorBankArtifacts(parquet_path, meta_json_path)


def load_descriptor_bank(
    parquet_path: Path,
    descriptor_length: int = DESCRIPTOR_LENGTH,
) -> Dict[str, np.ndarray]:
    """Load a descriptor bank as person_id -> descriptor, dropping unusable rows."""
    df = pd.read_parquet(parquet_path)
    bank: Dict[str, np.ndarray] = {}
    for _, row in df.iterrows():
        descriptor = normalize_descriptor(row["descriptor"], descriptor_length)
        if descriptor is None:
            LOGGER.warning("Dropping bank row for %s: unusable descriptor", row["person_id"])
            continue
        bank[str(row["person_id"])] = descriptor
    return bank
