"""Schemas for the authorities reference listing."""

from typing import Optional

from pydantic import StrictInt, StrictStr

from ratings_archive.schemas.ratings import PassthroughModel, literal_union

REGIONS = (
    "East Counties",
    "East Midlands",
    "London",
    "North East",
    "North West",
    "Northern Ireland",
    "Scotland",
    "South East",
    "South West",
    "Wales",
    "West Midlands",
    "Yorkshire and Humberside",
)

Region = literal_union(REGIONS)


class Authority(PassthroughModel):
    """One local authority; unlisted fields are kept in ``model_extra``."""

    LocalAuthorityId: StrictInt
    LocalAuthorityIdCode: StrictStr
    Name: StrictStr
    RegionName: Region
    FileName: StrictStr
    FileNameWelsh: Optional[StrictStr] = None

    @property
    def auxiliary(self) -> dict:
        return dict(self.model_extra or {})


class AuthoritiesListing(PassthroughModel):
    authorities: list[Authority]
