"""
Import dependency graph.

Built once from the import specifiers of every scanned file, before any
target is scored. Each node records the file's category (its top-level
directory under src/), the files it imports, how many distinct other
categories it reaches, and its fan-out / fan-in.
"""

import posixpath
from typing import Iterable, Optional

from .config import DepGraphConfig
from .logging_config import get_logger
from .schema import DependencyGraphNode
from .utils import normalize_path

logger = get_logger("dependency_graph")

RESOLVABLE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs")

DependencyGraph = dict[str, DependencyGraphNode]


def top_category(path: str) -> str:
    """Category of a file: the directory right below `src`, else the first segment."""
    parts = normalize_path(path).split("/")
    if "src" in parts:
        idx = parts.index("src")
        if idx + 1 < len(parts):
            return parts[idx + 1]
    return parts[0]


def external_category(specifier: str) -> str:
    """Category of a bare import: the package name, scope included."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def resolve_specifier(source: str, specifier: str, known_files: set[str]) -> Optional[str]:
    """Resolve a relative import to one of the known files, or None."""
    base = posixpath.normpath(posixpath.join(posixpath.dirname(source), specifier))
    candidates = [base]
    candidates += [base + ext for ext in RESOLVABLE_EXTENSIONS]
    candidates += [f"{base}/index{ext}" for ext in RESOLVABLE_EXTENSIONS]
    for candidate in candidates:
        if candidate in known_files:
            return candidate
    return None


def build_dependency_graph(
    imports: dict[str, Iterable[str]],
    config: Optional[DepGraphConfig] = None,
) -> DependencyGraph:
    """Build the dependency graph from `{file: [import specifiers]}`.

    Args:
        imports: Import specifiers per scanned file, as written in the source.
        config: Graph options; only relative (`.`) specifiers become edges,
            bare specifiers count toward the cross-module score only when
            `count_external_imports` is set.

    Returns:
        Node per file. fanIn counts the other files whose deps include it.
    """
    config = config or DepGraphConfig()
    allowed = set(config.cross_module_categories)
    files = {normalize_path(path): list(specs) for path, specs in imports.items()}
    known_files = set(files)

    nodes: dict[str, dict] = {}
    unresolved = 0

    for path, specifiers in files.items():
        category = top_category(path)
        deps = set()
        external = set()

        for specifier in specifiers:
            if not specifier:
                continue
            if specifier.startswith("."):
                resolved = resolve_specifier(path, specifier, known_files)
                if resolved is None:
                    unresolved += 1
                elif resolved != path:
                    deps.add(resolved)
            elif config.count_external_imports:
                external.add(external_category(specifier))

        dep_categories = {top_category(dep) for dep in deps} | external
        dep_categories.discard(category)
        if allowed:
            dep_categories &= allowed

        nodes[path] = {
            "category": category,
            "deps": sorted(deps),
            "cross_module_score": len(dep_categories),
            "fan_out": len(deps),
            "fan_in": 0,
        }

    for data in nodes.values():
        for dep in data["deps"]:
            nodes[dep]["fan_in"] += 1

    logger.info(
        "Built dependency graph: %d files, %d edges, %d unresolved imports",
        len(nodes), sum(len(d["deps"]) for d in nodes.values()), unresolved,
    )
    return {path: DependencyGraphNode(**data) for path, data in nodes.items()}
