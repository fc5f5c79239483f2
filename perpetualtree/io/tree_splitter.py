#!/usr/bin/env python3
"""
Splitting of multi-tree Newick bundles into one tree per file.
"""

import logging
from pathlib import Path
from typing import List, Union

from Bio import Phylo
from Bio.Phylo.NewickIO import NewickError

from ..core.constants import TREE_FILE_EXTENSION
from ..exceptions import TreeParsingError

logger = logging.getLogger(__name__)


class TreeSetSplitter:
    """
    Writes each tree of a Newick bundle to its own file.

    Files are named `<prefix>_<index>.<extension>`, the index being the
    0-based position of the tree in the bundle, zero-padded so that a
    lexicographic listing preserves bundle order.
    """

    def __init__(self, extension: str = TREE_FILE_EXTENSION, index_width: int = 3):
        self.extension = extension
        self.index_width = index_width

    def split(self, bundle_path: Union[str, Path], prefix: Union[str, Path]) -> List[Path]:
        """
        Split a bundle into single-tree files.

        Args:
            bundle_path: Multi-tree Newick file
            prefix: Destination path prefix; its parent directory is created

        Returns:
            Paths of the written files, in bundle order

        Raises:
            TreeParsingError: If the bundle cannot be read or holds no tree
        """
        bundle_path = Path(bundle_path)
        prefix = Path(prefix)
        if not bundle_path.exists():
            raise TreeParsingError(f"Tree bundle not found: {bundle_path}", bundle_path)

        try:
            trees = list(Phylo.parse(str(bundle_path), "newick"))
        except (NewickError, ValueError) as e:
            raise TreeParsingError(f"Cannot parse tree bundle {bundle_path}: {e}", bundle_path) from e

        if not trees:
            raise TreeParsingError(f"Tree bundle {bundle_path} holds no tree", bundle_path)

        prefix.parent.mkdir(parents=True, exist_ok=True)
        written = []
        for index, tree in enumerate(trees):
            tree_path = prefix.parent / f"{prefix.name}_{index:0{self.index_width}d}.{self.extension}"
            Phylo.write(tree, str(tree_path), "newick")
            written.append(tree_path)

        logger.debug(f"Split {bundle_path} into {len(written)} tree files under {prefix.parent}")
        return written
