"""Schemas for per-authority establishment documents (JSON encoding)."""

from typing import Optional, Union

from pydantic import StrictFloat, StrictInt, StrictStr

from ratings_archive.schemas.ratings import PassthroughModel, build_rating_type

Coordinate = Union[StrictInt, StrictFloat]


class Geocode(PassthroughModel):
    Longitude: Optional[Coordinate]
    Latitude: Optional[Coordinate]


class EstablishmentBase(PassthroughModel):
    FHRSID: StrictInt
    LocalAuthorityBusinessID: StrictStr
    BusinessName: StrictStr
    BusinessType: StrictStr
    BusinessTypeID: Optional[StrictInt] = None
    AddressLine1: Optional[StrictStr] = None
    AddressLine2: Optional[StrictStr] = None
    AddressLine3: Optional[StrictStr] = None
    AddressLine4: Optional[StrictStr] = None
    PostCode: Optional[StrictStr] = None
    LocalAuthorityCode: Optional[StrictStr] = None
    LocalAuthorityName: Optional[StrictStr] = None
    # Withheld addresses (private homes, mobile traders) are published with a null geocode.
    Geocode: Optional[Geocode]


Establishment = build_rating_type(EstablishmentBase)


class Header(PassthroughModel):
    ExtractDate: StrictStr
    ItemCount: StrictInt
    ReturnCode: StrictStr


class EstablishmentBody(PassthroughModel):
    Header: Header
    EstablishmentCollection: list[Establishment]


class EstablishmentDocument(PassthroughModel):
    FHRSEstablishment: EstablishmentBody
