#!/usr/bin/env python3
"""
Persistence of a round's best-ML bunch.

A bunch is three files in the round's best-set directory:

- the bundle: the kept trees as Newick, one per line, in rank order
- the order manifest: JSON record of every kept tree's rank, candidate,
  likelihood and source file, independent of the bundle's own ordering
- the completion marker: written last, only after the other two are on disk

A directory without the marker is an incomplete bunch and is never used to
seed another round.
"""

import datetime
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Union

from ..core.constants import COMPLETION_MARKER_NAME, DEFAULT_BUNCH_MANIFEST_NAME
from ..core.round_model import BestBunch, BunchEntry, Ranking
from ..exceptions import BunchIncompleteError, FileOperationError, InvalidKeepCountError

logger = logging.getLogger(__name__)

MANIFEST_FORMAT_VERSION = 1


def write_durably(path: Path, content: str) -> None:
    """Write a file through a temporary sibling, fsync it and move it in place."""
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp_path, 'w') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        raise FileOperationError(f"Cannot write {path}: {e}", path, 'write') from e


class BestSetPersister:
    """Writes and reads best-ML bunches."""

    def __init__(self, manifest_name: str = DEFAULT_BUNCH_MANIFEST_NAME,
                 marker_name: str = COMPLETION_MARKER_NAME):
        self.manifest_name = manifest_name
        self.marker_name = marker_name

    def manifest_path_for(self, bundle_path: Path) -> Path:
        return Path(bundle_path).parent / self.manifest_name

    def marker_path_for(self, bundle_path: Path) -> Path:
        return Path(bundle_path).parent / self.marker_name

    def persist(self, ranking: Ranking, keep_count: int,
                destination_bundle_path: Union[str, Path], update_id: int = 0) -> BestBunch:
        """
        Write the top `keep_count` trees of a ranking and mark the bunch complete.

        Args:
            ranking: Ranked candidates of the round
            keep_count: Number of trees to keep
            destination_bundle_path: Bundle file to write
            update_id: Round the bunch belongs to

        Returns:
            The persisted BestBunch
        """
        bunch = self.write(ranking, keep_count, destination_bundle_path, update_id)
        self.mark_complete(bunch)
        return bunch

    def write(self, ranking: Ranking, keep_count: int,
              destination_bundle_path: Union[str, Path], update_id: int = 0) -> BestBunch:
        """Write the bundle and the order manifest, without the completion marker."""
        if keep_count < 1:
            raise InvalidKeepCountError(keep_count, len(ranking), update_id)

        bundle_path = Path(destination_bundle_path)
        bundle_path.parent.mkdir(parents=True, exist_ok=True)
        manifest_path = self.manifest_path_for(bundle_path)
        marker_path = self.marker_path_for(bundle_path)
        if marker_path.exists():
            raise FileOperationError(f"Bunch already marked complete: {marker_path}",
                                     marker_path, 'persist')

        kept = ranking.top(keep_count)
        newick_lines = []
        entries = []
        for rank, evaluated in enumerate(kept):
            newick_lines.append(self._read_newick(evaluated.tree_path))
            entries.append(BunchEntry(
                rank=rank,
                candidate=evaluated.name,
                lh=evaluated.lh,
                source_tree=str(evaluated.tree_path),
                seed=evaluated.candidate.seed,
                parent=str(evaluated.candidate.parent) if evaluated.candidate.parent else None,
            ))

        write_durably(bundle_path, "\n".join(newick_lines) + "\n")
        manifest = {
            'format_version': MANIFEST_FORMAT_VERSION,
            'update_id': update_id,
            'bundle': bundle_path.name,
            'keep_count': keep_count,
            'entries': [asdict(entry) for entry in entries],
        }
        write_durably(manifest_path, json.dumps(manifest, indent=2) + "\n")
        logger.info(f"Wrote {len(entries)} trees to {bundle_path} (order: {manifest_path})")

        return BestBunch(
            update_id=update_id,
            bundle_path=bundle_path,
            manifest_path=manifest_path,
            entries=tuple(entries),
        )

    def mark_complete(self, bunch: BestBunch) -> Path:
        """Write the completion marker of a bunch whose bundle and manifest exist."""
        for required in (bunch.bundle_path, bunch.manifest_path):
            if not Path(required).exists():
                raise BunchIncompleteError(f"Cannot mark bunch complete, missing {required}",
                                           required)
        marker_path = self.marker_path_for(bunch.bundle_path)
        timestamp = datetime.datetime.now().isoformat(timespec='seconds')
        write_durably(marker_path, f"finished {timestamp} trees={len(bunch)}\n")
        logger.debug(f"Marked bunch complete: {marker_path}")
        return marker_path

    def is_complete(self, bundle_path: Union[str, Path]) -> bool:
        """True when the bunch at `bundle_path` carries its completion marker."""
        bundle_path = Path(bundle_path)
        return (self.marker_path_for(bundle_path).exists()
                and bundle_path.exists()
                and self.manifest_path_for(bundle_path).exists())

    def load(self, bundle_path: Union[str, Path]) -> BestBunch:
        """
        Load a completed bunch from disk.

        Raises:
            BunchIncompleteError: If the marker is missing or the manifest unreadable
        """
        bundle_path = Path(bundle_path)
        if not self.is_complete(bundle_path):
            raise BunchIncompleteError(f"Bunch not complete: {bundle_path}", bundle_path)

        manifest_path = self.manifest_path_for(bundle_path)
        try:
            manifest = json.loads(manifest_path.read_text())
            entries = tuple(BunchEntry(**entry) for entry in manifest['entries'])
            update_id = manifest.get('update_id', 0)
        except (ValueError, KeyError, TypeError) as e:
            raise BunchIncompleteError(f"Unreadable bunch manifest {manifest_path}: {e}",
                                       manifest_path) from e

        return BestBunch(update_id=update_id, bundle_path=bundle_path,
                         manifest_path=manifest_path, entries=entries)

    @staticmethod
    def _read_newick(tree_path: Path) -> str:
        try:
            newick = Path(tree_path).read_text().strip()
        except OSError as e:
            raise FileOperationError(f"Cannot read tree {tree_path}: {e}", tree_path, 'read') from e
        if not newick:
            raise FileOperationError(f"Empty tree file {tree_path}", tree_path, 'read')
        # One tree per line in the bundle
        newick = " ".join(newick.split())
        return newick if newick.endswith(";") else newick + ";"
