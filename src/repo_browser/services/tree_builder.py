"""Turn a flat file list into a nested directory tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Sequence

from repo_browser.domain.entities import TreeEntry


@dataclass
class TreeNode:
    name: str
    path: str
    kind: Literal["file", "folder"]
    display_path: str
    children: list[TreeNode] = field(default_factory=list)
    file: TreeEntry | None = None


def build_file_tree(files: Sequence[TreeEntry]) -> list[TreeNode]:
    """Nest *files* by path segment; siblings appear in sorted path order."""
    roots: list[TreeNode] = []
    folders: dict[str, TreeNode] = {}

    for entry in sorted(files, key=lambda f: f.path):
        parts = entry.path.split("/")
        level = roots
        current = ""
        for depth, part in enumerate(parts):
            current = part if depth == 0 else f"{current}/{part}"
            if depth == len(parts) - 1:
                level.append(
                    TreeNode(name=part, path=entry.path, kind="file", display_path=part, file=entry)
                )
                break
            folder = folders.get(current)
            if folder is None:
                folder = TreeNode(name=part, path=current, kind="folder", display_path=part)
                folders[current] = folder
                level.append(folder)
            level = folder.children
    return roots


def compact_tree_paths(nodes: list[TreeNode]) -> list[TreeNode]:
    """Merge chains of single-child folders into one node (``src/main/java``).

    Nodes are modified in place; the same list is returned.
    """
    for node in nodes:
        if node.kind != "folder":
            continue
        compact_tree_paths(node.children)
        while len(node.children) == 1 and node.children[0].kind == "folder":
            only = node.children[0]
            node.display_path = f"{node.display_path}/{only.display_path}"
            node.children = only.children
    return nodes
