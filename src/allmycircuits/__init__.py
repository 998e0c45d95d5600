"""all-my-circuits: concatenate a source tree annotated with Git metadata.

Every bundled file is preceded by a header carrying its relative path and
the hash and timestamp of the last commit that touched it.
"""

__version__ = "0.2.3"

from allmycircuits.cli import main  # noqa: E402
from allmycircuits.models import CandidateFile, CommitMetadata  # noqa: E402

__all__ = ["main", "CandidateFile", "CommitMetadata", "__version__"]
