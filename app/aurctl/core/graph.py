"""Graphviz (DOT) rendering of dependency graphs.

Works on any arena of DependencyNodes: a resolver result, or a graph
built from the installed packages with ``installed_graph``.
"""

from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from aurctl.models.dependency import DependencyNode, DependencySource
from aurctl.models.package import InstalledPackage, strip_constraint

_NODE_STYLES: dict[DependencySource, str] = {
    DependencySource.AUR: 'shape=box, style=filled, fillcolor="#b3d4fc"',
    DependencySource.REPO: "shape=ellipse",
    DependencySource.VIRTUAL_PROVIDED: "shape=ellipse, style=dashed",
}


def _quote(text: str) -> str:
    # Labels carry "\n" line breaks, so backslashes pass through
    escaped = text.replace('"', '\\"')
    return f'"{escaped}"'


def _label(node: DependencyNode) -> str:
    label = node.name
    if node.version:
        label += f"\\n{node.version}"
    if node.provider:
        label += f"\\n({node.provider})"
    return label


def reachable(
    graph: Mapping[str, DependencyNode],
    roots: Iterable[str],
    limit: int | None = None,
) -> list[str]:
    """Names reachable from ``roots`` within ``limit`` edges, breadth first.

    Names absent from the graph are ignored. ``limit=0`` keeps only the
    roots; None means unbounded.
    """
    depth: dict[str, int] = {}
    queue: deque[str] = deque()
    for root in roots:
        if root in graph and root not in depth:
            depth[root] = 0
            queue.append(root)

    while queue:
        name = queue.popleft()
        if limit is not None and depth[name] >= limit:
            continue
        for child in graph[name].children:
            if child in graph and child not in depth:
                depth[child] = depth[name] + 1
                queue.append(child)
    return list(depth)


def to_dot(
    graph: Mapping[str, DependencyNode],
    roots: Sequence[str] | None = None,
    limit: int | None = None,
) -> str:
    """Render a dependency graph as a DOT digraph.

    Args:
        graph: Name to node.
        roots: Start points; all nodes if None.
        limit: Maximum depth below the roots.

    Returns:
        DOT source text with one node per package and an edge per
        "depends on" relation.
    """
    names = reachable(graph, roots if roots is not None else list(graph), limit)
    included = set(names)

    lines = ["digraph dependencies {", "    rankdir=LR;", '    node [fontname="sans-serif"];']
    for name in names:
        node = graph[name]
        style = _NODE_STYLES[node.source]
        lines.append(f"    {_quote(name)} [label={_quote(_label(node))}, {style}];")
    for name in names:
        for child in graph[name].children:
            if child in included:
                lines.append(f"    {_quote(name)} -> {_quote(child)};")
    lines.append("}")
    return "\n".join(lines) + "\n"


def installed_graph(
    packages: Iterable[InstalledPackage],
    foreign: Iterable[str] = (),
    reverse: bool = False,
    optional: bool = False,
) -> dict[str, DependencyNode]:
    """Build a dependency graph of the installed system.

    Dependencies are matched against installed names and provides. Foreign
    packages (not from a repository) are marked as AUR nodes.

    Args:
        packages: Installed packages.
        foreign: Names of foreign packages.
        reverse: Point edges from a package to the packages requiring it.
        optional: Include optional dependencies that are installed.
    """
    installed = list(packages)
    foreign_names = set(foreign)

    providers: dict[str, str] = {}
    for package in installed:
        for provided in package.provided_names:
            providers.setdefault(provided, package.name)
        providers[package.name] = package.name

    edges: dict[str, list[str]] = {p.name: [] for p in installed}
    for package in installed:
        wanted = list(package.depends)
        if optional:
            wanted.extend(package.optdepends)
        for dependency in wanted:
            target = providers.get(strip_constraint(dependency))
            if target is None or target == package.name:
                continue
            parent, child = (target, package.name) if reverse else (package.name, target)
            if child not in edges[parent]:
                edges[parent].append(child)

    versions = {p.name: p.version for p in installed}
    return {
        name: DependencyNode(
            name=name,
            source=DependencySource.AUR if name in foreign_names else DependencySource.REPO,
            children=tuple(children),
            version=versions[name],
        )
        for name, children in edges.items()
    }
