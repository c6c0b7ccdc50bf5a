"""Rating-state schemas.

An establishment's rating block is a tagged variant: ``SchemeType`` picks
the scheme, then ``RatingValue`` picks one state of that scheme. Each state
fixes which ``RatingKey`` values are legal and whether ``RatingDate`` and
``Scores`` may carry data. ``"never"`` is legal under both schemes.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, create_model

from ratings_archive.common.errors import ConfigError

FHRS = "FHRS"
FHIS = "FHIS"
NEVER = "never"

FHRS_SCORED_VALUES = ("5", "4", "3", "2", "1", "0")
FHRS_UNSCORED_VALUES = ("AwaitingInspection", "AwaitingPublication", "Exempt")
FHIS_VALUES = (
    "Pass",
    "Pass and Eat Safe",
    "Improvement Required",
    "Exempt",
    "Awaiting Inspection",
    "Awaiting Publication",
)

FHRS_RATING_KEYS: dict[str, tuple[str, ...]] = {
    **{value: (f"fhrs_{value}_en-GB", f"fhrs_{value}_cy-GB") for value in FHRS_SCORED_VALUES},
    **{
        value: (f"fhrs_{value.lower()}_en-GB", f"fhrs_{value.lower()}_cy-GB")
        for value in FHRS_UNSCORED_VALUES
    },
}

# The pass/fail scheme is only published in English.
FHIS_RATING_KEYS: dict[str, str] = {
    value: f"fhis_{value.lower().replace(' ', '_')}_en-GB" for value in FHIS_VALUES
}

HYGIENE_SCORES = (0, 5, 10, 15, 20, 25)
STRUCTURAL_SCORES = (0, 5, 10, 15, 20, 25)
CONFIDENCE_SCORES = (0, 5, 10, 20, 30)


def literal_union(values: tuple[Any, ...] | list[Any]) -> Any:
    """Build a ``Literal`` accepting exactly ``values``.

    A union needs at least two members; fewer means the key registry is
    misconfigured, which is reported when the schemas are built rather than
    when a document is checked.
    """
    members = tuple(dict.fromkeys(values))
    if len(members) < 2:
        raise ConfigError(f"Literal union needs at least two members, got {list(members)!r}")
    return Literal[members]


class PassthroughModel(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


HygieneScore = literal_union(HYGIENE_SCORES)
StructuralScore = literal_union(STRUCTURAL_SCORES)
ConfidenceScore = literal_union(CONFIDENCE_SCORES)


class Scores(PassthroughModel):
    Hygiene: HygieneScore
    Structural: StructuralScore
    ConfidenceInManagement: ConfidenceScore


def _state_model(
    base: type[BaseModel],
    scheme: str,
    value: str,
    key_type: Any,
    *,
    date_type: Any,
    scores_type: Any,
) -> type[BaseModel]:
    name = "".join(part.capitalize() for part in f"{scheme} {value}".split()) + base.__name__
    return create_model(
        name,
        __base__=base,
        SchemeType=(Literal[scheme], ...),
        RatingValue=(Literal[value], ...),
        RatingKey=(key_type, ...),
        RatingDate=(date_type, ...),
        Scores=(scores_type, ...),
    )


def build_rating_states(
    base: type[BaseModel] = PassthroughModel,
    fhrs_keys: dict[str, tuple[str, ...]] = FHRS_RATING_KEYS,
    fhis_keys: dict[str, str] = FHIS_RATING_KEYS,
) -> tuple[list[type[BaseModel]], list[type[BaseModel]]]:
    """Return the FHRS and FHIS state models, each extending ``base``."""
    fhrs_states: list[type[BaseModel]] = []
    for value, keys in fhrs_keys.items():
        key_type = literal_union(keys)
        if value in FHRS_SCORED_VALUES:
            # Real-world records carry a rating without a date or scores.
            fhrs_states.append(
                _state_model(base, FHRS, value, key_type, date_type=Optional[StrictStr], scores_type=Optional[Scores])
            )
        else:
            fhrs_states.append(_state_model(base, FHRS, value, key_type, date_type=None, scores_type=None))
    fhrs_states.append(_state_model(base, FHRS, NEVER, StrictStr, date_type=None, scores_type=None))

    fhis_states: list[type[BaseModel]] = [
        _state_model(base, FHIS, value, Literal[key], date_type=Optional[StrictStr], scores_type=None)
        for value, key in fhis_keys.items()
    ]
    fhis_states.append(_state_model(base, FHIS, NEVER, StrictStr, date_type=None, scores_type=None))
    return fhrs_states, fhis_states


def build_rating_type(
    base: type[BaseModel] = PassthroughModel,
    fhrs_keys: dict[str, tuple[str, ...]] = FHRS_RATING_KEYS,
    fhis_keys: dict[str, str] = FHIS_RATING_KEYS,
) -> Any:
    """Nested tagged union: ``SchemeType`` first, then ``RatingValue``."""
    fhrs_states, fhis_states = build_rating_states(base, fhrs_keys, fhis_keys)
    fhrs_rating = Annotated[Union[tuple(fhrs_states)], Field(discriminator="RatingValue")]
    fhis_rating = Annotated[Union[tuple(fhis_states)], Field(discriminator="RatingValue")]
    return Annotated[Union[fhrs_rating, fhis_rating], Field(discriminator="SchemeType")]
