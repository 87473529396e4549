from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


# Read-only configuration snapshots used by the map engine.
# Free-form detail maps from the config are resolved into typed fields by
# ConfigStore at load time. None means "field absent".


class HiDpiMode(Enum):
    SHOW_NEXT_ZOOM_LEVEL = 'showNextZoomLevel'
    SUBSTITUTE_LAYER_SHOW_NEXT_ZOOM_LEVEL = 'substituteLayerShowNextZoomLevel'
    SUBSTITUTE_LAYER_TILING_DEVICE_PIXEL_RATIO = \
        'substituteLayerTilingDevicePixelRatio'


class ServerType(Enum):
    GENERIC = 'generic'
    GEOSERVER = 'geoserver'
    MAPSERVER = 'mapserver'
    AUTO = 'auto'


@dataclass(frozen=True)
class Bounds:
    minx: float
    miny: float
    maxx: float
    maxy: float

    def to_json(self):
        return {
            'minx': self.minx, 'miny': self.miny,
            'maxx': self.maxx, 'maxy': self.maxy
        }


@dataclass(frozen=True)
class StartLevel:
    level_id: int
    selected_index: Optional[int] = None
    removed: bool = False


@dataclass(frozen=True)
class StartLayer:
    app_layer_id: int
    checked: bool = False
    removed: bool = False


@dataclass(frozen=True)
class Application:
    id: int
    name: str
    root_level_id: int
    version: Optional[str] = None
    title: Optional[str] = None
    readers: frozenset = frozenset()
    crs: Optional[str] = None
    initial_extent: Optional[Bounds] = None
    max_extent: Optional[Bounds] = None
    start_levels: tuple = ()
    start_layers: tuple = ()

    @property
    def public(self):
        return not self.readers


@dataclass(frozen=True)
class Level:
    id: int
    name: str
    parent_id: Optional[int] = None
    background: bool = False
    layer_ids: tuple = ()
    readers: frozenset = frozenset()
    info: Optional[str] = None


@dataclass(frozen=True)
class AppLayerDetails:
    title_alias: Optional[str] = None
    transparency: Optional[int] = None
    context: Optional[str] = None


@dataclass(frozen=True)
class AppLayer:
    id: int
    service_id: int
    layer_name: str
    readers: frozenset = frozenset()
    details: AppLayerDetails = field(default_factory=AppLayerDetails)
    attributes: tuple = ()


@dataclass(frozen=True)
class LayerDetails:
    hidpi_mode: Optional[HiDpiMode] = None
    hidpi_substitute_layer: Optional[str] = None


@dataclass(frozen=True)
class ServiceLayer:
    # id is the position in the service's layer hierarchy, parents first
    id: int
    service_id: int
    name: Optional[str] = None
    display_name: Optional[str] = None
    parent_id: Optional[int] = None
    readers: frozenset = frozenset()
    min_scale: Optional[float] = None
    max_scale: Optional[float] = None
    legend_image_url: Optional[str] = None
    abstract: Optional[str] = None
    details: LayerDetails = field(default_factory=LayerDetails)


@dataclass(frozen=True)
class ServiceDetails:
    use_proxy: bool = False
    server_type: ServerType = ServerType.AUTO
    tiling_disabled: bool = False
    tiling_gutter: Optional[int] = None


@dataclass(frozen=True)
class GeoService:
    id: int
    name: str
    url: str
    protocol: str
    tiling_protocol: Optional[str] = None
    readers: frozenset = frozenset()
    authentication: Optional[dict] = field(default=None, compare=False)
    details: ServiceDetails = field(default_factory=ServiceDetails)
