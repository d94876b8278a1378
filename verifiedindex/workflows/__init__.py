"""CI workflow generation for declared builds."""

from verifiedindex.workflows.generator import generate_workflows

__all__ = ["generate_workflows"]
