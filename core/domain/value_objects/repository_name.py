"""Repository name-with-owner value object."""
import re
from dataclasses import dataclass

_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")


@dataclass(frozen=True)
class RepositoryName:
    """
    GitHub ``owner/repository`` identifier.

    Examples:
    - octocat/hello-world
    - fastly/compute-starter-kit-rust-default
    """
    owner: str
    name: str

    def __post_init__(self):
        for part in (self.owner, self.name):
            if not part or not _SEGMENT.match(part) or part in (".", ".."):
                raise ValueError(f"Invalid repository name: {self.owner}/{self.name}")

    @classmethod
    def parse(cls, nwo: str) -> "RepositoryName":
        parts = nwo.strip().strip("/").split("/")
        if len(parts) != 2:
            raise ValueError(f"Expected owner/repository, got: {nwo!r}")
        return cls(owner=parts[0], name=parts[1])

    @property
    def slug(self) -> str:
        """DNS-safe label, e.g. ``octocat-hello-world``."""
        label = re.sub(r"[^a-z0-9-]+", "-", f"{self.owner}-{self.name}".lower())
        return label.strip("-")[:63]

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"
