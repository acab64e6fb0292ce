"""Pydantic data models for the annotation and image-server wire formats."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from .const import FRAGMENT_SELECTOR


class PolygonGeometry(BaseModel):
    """GeoJSON Polygon geometry.

    Attributes:
        type: Always "Polygon".
        coordinates: List of linear rings, each a list of [x, y] positions.
            Only the first ring is used.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["Polygon"] = "Polygon"
    coordinates: list[list[list[float]]]


class Feature(BaseModel):
    """GeoJSON Feature wrapping a single polygon, as stored by the backend."""
    model_config = ConfigDict(frozen=True)

    type: Literal["Feature"] = "Feature"
    geometry: PolygonGeometry
    properties: dict[str, Any] | None = None
    crs: Any = None


class GraphComponent(BaseModel):
    model_config = ConfigDict(frozen=True)

    component: int
    features: list[int] = []


class StoredAnnotation(BaseModel):
    """An annotation record ("graph") as returned by the annotation-storage API.

    Attributes:
        id: Backend primary key.
        annotation: The polygon feature in storage space (Y-up).
        allograph: Allograph id labelling the region.
        hand: Hand (scribe) id.
        item_image: Image the annotation belongs to.
        graphcomponent_set: Component/feature pairs attached to the graph.
        positions: Position ids attached to the graph.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    annotation: Feature
    allograph: int | None = None
    hand: int | None = None
    item_image: int | None = None
    graphcomponent_set: list[GraphComponent] = []
    positions: list[int] = []


class FragmentSelector(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["FragmentSelector"] = "FragmentSelector"
    conforms_to: str = Field(default=FRAGMENT_SELECTOR['conforms_to'], alias="conformsTo")
    value: str


class AnnotationTarget(BaseModel):
    source: str | None = None
    selector: FragmentSelector | None = None


class TextualBody(BaseModel):
    type: Literal["TextualBody"] = "TextualBody"
    purpose: str = "commenting"
    value: str


class AnnotationMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allograph_id: int | None = Field(default=None, alias="allographId")
    hand_id: int | None = Field(default=None, alias="handId")


class ViewerAnnotation(BaseModel):
    """W3C Web Annotation as held by the in-browser annotation editor.

    Attributes:
        id: "db:<n>" for persisted records, an opaque client id otherwise.
        target: Target carrying the `xywh=pixel:` fragment selector.
        body: Zero or one commenting text body with the allograph label.
        metadata: Allograph and hand ids, serialized as `_meta`.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: Literal["Annotation"] = "Annotation"
    target: AnnotationTarget
    body: list[TextualBody] = []
    metadata: AnnotationMeta = Field(default_factory=AnnotationMeta, alias="_meta")

    @property
    def selector(self) -> str | None:
        """The fragment-selector value, or None when the target has no selector."""
        if self.target.selector is None:
            return None
        return self.target.selector.value


class ImageInfo(BaseModel):
    """The subset of a IIIF Image API info document used for clamping and sizing."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    width: PositiveInt
    height: PositiveInt
    max_width: PositiveInt | None = Field(default=None, alias="maxWidth")
    max_height: PositiveInt | None = Field(default=None, alias="maxHeight")
