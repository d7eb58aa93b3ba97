"""
Document validation - Check process maps for structural issues.

Errors are invariant violations that make a document unusable by the
editing session (load and import refuse them). Warnings describe
legitimate but suspicious content and never block anything.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Document


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a document."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def validate_document(document: "Document") -> list[ValidationIssue]:
    """
    Validate a document and return a list of issues.

    Checks for:
    - Duplicate node ids - ERROR
    - Duplicate edge ids - ERROR
    - Dangling edge references (source/target doesn't exist) - ERROR
    - Self-referencing edges - ERROR
    - Orphan nodes (no connections) - WARNING
    - Empty labels on non-text shapes - WARNING
    - Parallel edges (same source->target) - INFO, they are allowed
    - Empty document - INFO

    Args:
        document: The document to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    nodes = document.nodes
    edges = document.edges

    if not nodes and not edges:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Document has no nodes"
        ))
        return issues

    node_ids: set[str] = set()
    for node in nodes:
        if node.id in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        node_ids.add(node.id)

    edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in edge_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate edge id: {edge.id}",
                edge_id=edge.id
            ))
        edge_ids.add(edge.id)

    for edge in edges:
        if edge.source not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent source node: {edge.source}",
                edge_id=edge.id
            ))
        if edge.target not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent target node: {edge.target}",
                edge_id=edge.id
            ))
        if edge.source == edge.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Self-referencing edge (node points to itself)",
                edge_id=edge.id,
                node_id=edge.source
            ))

    connected_nodes: set[str] = set()
    for edge in edges:
        connected_nodes.add(edge.source)
        connected_nodes.add(edge.target)

    # Text annotations are free-floating by nature
    orphans = [n for n in nodes if n.id not in connected_nodes and n.type != "text"]
    if orphans:
        orphan_labels = [f"{node.label} ({node.id})" for node in orphans]
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Orphan nodes (no connections): {', '.join(orphan_labels)}"
        ))

    for node in nodes:
        if node.type != "text" and not node.label.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Node has an empty label",
                node_id=node.id
            ))

    seen_pairs: set[tuple[str, str]] = set()
    for edge in edges:
        pair = (edge.source, edge.target)
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message=f"Parallel edge from {edge.source} to {edge.target}",
                edge_id=edge.id
            ))
        else:
            seen_pairs.add(pair)

    return issues


def structural_errors(document: "Document") -> list[ValidationIssue]:
    """Return only the issues that make a document invalid."""
    return [i for i in validate_document(document) if i.severity == IssueSeverity.ERROR]


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
