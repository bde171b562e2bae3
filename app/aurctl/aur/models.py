"""AUR package metadata as returned by the RPC interface."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class PackageMetadata(BaseModel):
    """Metadata of one AUR package.

    Field aliases follow the RPC's JSON keys; fields the RPC omits
    (it drops empty dependency lists) default to empty.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    name: Annotated[str, Field(alias="Name", min_length=1)]
    version: Annotated[str, Field(alias="Version", min_length=1)]
    package_base: Annotated[str | None, Field(alias="PackageBase")] = None
    description: Annotated[str | None, Field(alias="Description")] = None
    url: Annotated[str | None, Field(alias="URL")] = None
    depends: Annotated[tuple[str, ...], Field(alias="Depends")] = ()
    make_depends: Annotated[tuple[str, ...], Field(alias="MakeDepends")] = ()
    check_depends: Annotated[tuple[str, ...], Field(alias="CheckDepends")] = ()
    opt_depends: Annotated[tuple[str, ...], Field(alias="OptDepends")] = ()
    provides: Annotated[tuple[str, ...], Field(alias="Provides")] = ()
    conflicts: Annotated[tuple[str, ...], Field(alias="Conflicts")] = ()
    votes: Annotated[int, Field(alias="NumVotes", ge=0)] = 0
    popularity: Annotated[float, Field(alias="Popularity", ge=0)] = 0.0
    out_of_date: Annotated[int | None, Field(alias="OutOfDate")] = None
    maintainer: Annotated[str | None, Field(alias="Maintainer")] = None

    @property
    def base(self) -> str:
        """Package base, the unit that is cloned and built."""
        return self.package_base or self.name

    @property
    def build_depends(self) -> tuple[str, ...]:
        """Everything needed to build and install: runtime, make and check deps."""
        return (*self.depends, *self.make_depends, *self.check_depends)

    @property
    def is_orphaned(self) -> bool:
        """Check if the package has no maintainer."""
        return self.maintainer is None

    @property
    def is_out_of_date(self) -> bool:
        """Check if the package has been flagged out of date."""
        return self.out_of_date is not None
