"""Dependency graph traversal and workflow snapshots.

A Workflow is a point-in-time description of the graph reachable from a set
of targets: one node per distinct signature, one link per declared
dependency. It is built from step metadata only and never evaluates a
producer.
"""

import html
from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .producer import PersistedProducer, Producer


def upstream_dependencies(producer: Producer) -> List[Producer]:
    """All transitive dependencies of ``producer``, excluding itself.

    Deduplicated by signature, so a node shared by several paths (a diamond)
    appears once. Direct dependencies of a node are listed in name order.
    A visited set bounds the walk even if a cycle slipped in.
    """
    visited = {producer.signature.id}
    result: List[Producer] = []
    stack: List[Producer] = [producer]
    while stack:
        current = stack.pop()
        deps = current.step_info.dependencies
        found = []
        for name in sorted(deps):
            dep = deps[name]
            sig_id = dep.signature.id
            if sig_id in visited:
                continue
            visited.add(sig_id)
            found.append(dep)
        result.extend(found)
        # Reversed so that the lowest name is expanded first
        stack.extend(reversed(found))
    return result


def persisted_upstream(producers: Iterable[Producer]) -> List[PersistedProducer]:
    """Persisted nodes among the transitive dependencies of ``producers``."""
    seen = set()
    found: List[PersistedProducer] = []
    for producer in producers:
        for dep in upstream_dependencies(producer):
            if isinstance(dep, PersistedProducer) and dep.signature.id not in seen:
                seen.add(dep.signature.id)
                found.append(dep)
    return found


class WorkflowNode(BaseModel):
    """One step of a workflow snapshot."""
    kind: str
    version: str
    parameters: Dict[str, str] = Field(default_factory=dict)
    description: Optional[str] = None
    output_location: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class WorkflowLink(BaseModel):
    """A named dependency: ``to_id`` depends on ``from_id``."""
    from_id: str
    to_id: str
    name: str

    model_config = ConfigDict(frozen=True, extra="forbid")


class Workflow(BaseModel):
    """Dependency graph snapshot keyed by signature id."""
    nodes: Dict[str, WorkflowNode]
    links: List[WorkflowLink]
    targets: List[str] = Field(default_factory=list)  # Signature ids of the run targets

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def for_pipeline(cls, *targets: Producer) -> "Workflow":
        """Build the snapshot rooted at ``targets``."""
        steps: Dict[str, Producer] = {}
        for target in targets:
            # A persisted target wins over an unpersisted node with the same
            # signature, since it carries the output location
            if target.signature.id not in steps or isinstance(target, PersistedProducer):
                steps[target.signature.id] = target
        for target in targets:
            for dep in upstream_dependencies(target):
                existing = steps.get(dep.signature.id)
                if existing is None or (
                    isinstance(dep, PersistedProducer) and not isinstance(existing, PersistedProducer)
                ):
                    steps[dep.signature.id] = dep

        nodes: Dict[str, WorkflowNode] = {}
        links = set()
        for sig_id, step in steps.items():
            info = step.step_info
            nodes[sig_id] = WorkflowNode(
                kind=info.kind,
                version=info.version,
                parameters=info.parameter_summary(),
                description=info.description,
                output_location=info.output_location,
            )
            for name, dep in info.dependencies.items():
                links.add((dep.signature.id, sig_id, name))

        target_ids: List[str] = []
        for target in targets:
            if target.signature.id not in target_ids:
                target_ids.append(target.signature.id)

        return cls(
            nodes=dict(sorted(nodes.items())),
            links=[WorkflowLink(from_id=f, to_id=t, name=n) for f, t, n in sorted(links)],
            targets=target_ids,
        )

    def sources(self) -> List[str]:
        """Ids of nodes with no dependencies."""
        has_deps = {link.to_id for link in self.links}
        return [node_id for node_id in self.nodes if node_id not in has_deps]

    def _levels(self) -> List[List[str]]:
        """Group node ids by depth from the sources."""
        deps: Dict[str, List[str]] = {node_id: [] for node_id in self.nodes}
        for link in self.links:
            deps[link.to_id].append(link.from_id)
        depth: Dict[str, int] = {}

        def node_depth(node_id: str, active: Tuple[str, ...] = ()) -> int:
            if node_id in depth:
                return depth[node_id]
            if node_id in active:
                return 0
            parents = deps[node_id]
            d = 0 if not parents else 1 + max(node_depth(p, active + (node_id,)) for p in parents)
            depth[node_id] = d
            return d

        for node_id in self.nodes:
            node_depth(node_id)
        levels: List[List[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
        for node_id in sorted(self.nodes, key=lambda n: (self.nodes[n].kind, n)):
            levels[depth[node_id]].append(node_id)
        return levels

    def render_html(self) -> str:
        """Human-readable rendering of the snapshot, one section per depth level."""
        esc = html.escape
        lines = [
            "<!DOCTYPE html>",
            "<html>",
            "<head><meta charset=\"utf-8\"><title>Workflow</title></head>",
            "<body>",
            "<h1>Workflow</h1>",
            f"<p>{len(self.nodes)} steps, {len(self.links)} dependencies, "
            f"{len(self.targets)} targets</p>",
        ]
        incoming: Dict[str, List[WorkflowLink]] = {}
        for link in self.links:
            incoming.setdefault(link.to_id, []).append(link)

        for level, node_ids in enumerate(self._levels()):
            lines.append(f"<h2>Level {level}</h2>")
            for node_id in node_ids:
                node = self.nodes[node_id]
                marker = " (target)" if node_id in self.targets else ""
                lines.append(f"<div class=\"step\" id=\"{esc(node_id)}\">")
                lines.append(f"<h3>{esc(node.kind)}{marker}</h3>")
                lines.append(f"<p>Signature: <code>{esc(node_id)}</code> (version {esc(node.version)})</p>")
                if node.description:
                    lines.append(f"<p>{esc(node.description)}</p>")
                if node.output_location:
                    lines.append(f"<p>Output: <code>{esc(node.output_location)}</code></p>")
                if node.parameters:
                    lines.append("<ul>")
                    for name, value in node.parameters.items():
                        lines.append(f"<li>{esc(name)} = <code>{esc(value)}</code></li>")
                    lines.append("</ul>")
                deps = incoming.get(node_id, [])
                if deps:
                    lines.append("<p>Depends on:</p>")
                    lines.append("<ul>")
                    for link in deps:
                        upstream = self.nodes[link.from_id]
                        lines.append(
                            f"<li>{esc(link.name)}: "
                            f"<a href=\"#{esc(link.from_id)}\">{esc(upstream.kind)}</a></li>"
                        )
                    lines.append("</ul>")
                lines.append("</div>")
        lines.append("</body>")
        lines.append("</html>")
        return "\n".join(lines) + "\n"
