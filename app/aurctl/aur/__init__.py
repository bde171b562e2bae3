"""AUR access: metadata RPC, build-script clones and makepkg."""

from aurctl.aur.builder import BuildOutput, Makepkg
from aurctl.aur.client import AurClient, LookupResult, sort_results
from aurctl.aur.git import FetchResult, GitClient
from aurctl.aur.models import PackageMetadata

__all__ = [
    "AurClient",
    "BuildOutput",
    "FetchResult",
    "GitClient",
    "LookupResult",
    "Makepkg",
    "PackageMetadata",
    "sort_results",
]
