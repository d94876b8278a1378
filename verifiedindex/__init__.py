"""verifiedindex: static index of verified program builds.

Builds a queryable JSON index of the program binaries, checksums and IDLs
that per-release CI workflows publish to the artifact repository, and
generates those workflows.
"""

__version__ = "0.1.0"
__description__ = "Static index of verified program builds and their CI workflows"

from verifiedindex.core.pipeline import generate_index
from verifiedindex.workflows.generator import generate_workflows

__all__ = ["generate_index", "generate_workflows", "__version__"]
