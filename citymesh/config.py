"""Generation configuration, environment settings, and logging setup.

Every knob a generation pass reads lives in :class:`ModelConfig`.  The
models are frozen so builders can share one instance for the whole pass
without copying it.  Defaults match the stock configuration of the map
modeller this pipeline serves.
"""

import json
import logging
import os
import pathlib
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

BASE_DIR = pathlib.Path(__file__).parent.parent.absolute()
OUTPUT_DIR = pathlib.Path(os.environ.get("CITYMESH_OUTPUT_DIR", BASE_DIR / "output"))
LOG_LEVEL = os.environ.get("CITYMESH_LOG_LEVEL", "INFO").upper()

_env_seed = os.environ.get("CITYMESH_SEED", "").strip()
DEFAULT_SEED = int(_env_seed) if _env_seed else 0

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None) -> None:
    """Install the package log format on the root logger."""
    logging.basicConfig(level=getattr(logging, level or LOG_LEVEL, logging.INFO),
                        format=LOG_FORMAT)


class _Section(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='ignore')


# ── Per-category sections ─────────────────────────────────────────────

class GlobalConfig(_Section):
    scale: float = 1.0
    seed: int = DEFAULT_SEED


class ProjectionConfig(_Section):
    """Projection center and scale.

    ``center`` is ``(lon, lat)``; when omitted the bbox center is used.
    """
    center: Optional[tuple[float, float]] = Field(default=None, alias='centerPoint')
    scale: float = 1.0
    render_height: float = Field(default=1.0, alias='renderHeight')


class TerrainConfig(_Section):
    enabled: bool = True
    base_height: float = Field(default=2.0, alias='baseHeight')
    color: str = '#68d391'
    rounded_corners: bool = Field(default=True, alias='roundedCorners')


class RoofConfig(_Section):
    enabled: bool = True
    type: str = 'flat'              # flat | pitched | dome
    height_ratio: float = Field(default=0.25, alias='heightRatio')
    color: str = '#a0aec0'


class WindowConfig(_Section):
    enabled: bool = True
    color: str = '#4299e1'
    spacing: float = 2.0


class BuildingConfig(_Section):
    enabled: bool = True
    base_height: float = Field(default=3.0, alias='baseHeight')
    max_height: float = Field(default=50.0, alias='maxHeight')
    min_height: float = Field(default=2.0, alias='minHeight')
    color: str = '#cbd5e0'
    ignore_smaller: float = Field(default=10.0, alias='ignoreSmallArea')
    detail_level: str = Field(default='medium', alias='detailLevel')
    roof: RoofConfig = Field(default_factory=RoofConfig, alias='roofConfig')
    window: WindowConfig = Field(default_factory=WindowConfig, alias='windowConfig')
    decorations: bool = True


class RoadTypeConfig(_Section):
    width: float
    height: float
    color: str


def _default_road_types() -> dict[str, RoadTypeConfig]:
    return {
        'motorway':    RoadTypeConfig(width=12.0, height=0.3, color='#2d3748'),
        'trunk':       RoadTypeConfig(width=10.0, height=0.25, color='#4a5568'),
        'primary':     RoadTypeConfig(width=8.0, height=0.2, color='#718096'),
        'secondary':   RoadTypeConfig(width=6.0, height=0.15, color='#a0aec0'),
        'residential': RoadTypeConfig(width=4.0, height=0.1, color='#cbd5e0'),
        'footway':     RoadTypeConfig(width=1.5, height=0.05, color='#e2e8f0'),
    }


class RoadConfig(_Section):
    enabled: bool = True
    height: float = 0.2
    width: float = 4.0
    color: str = '#4a5568'
    min_width: float = Field(default=0.5, alias='minWidth')
    types: dict[str, RoadTypeConfig] = Field(default_factory=_default_road_types)

    def for_class(self, road_class: Optional[str]) -> RoadTypeConfig:
        """Look up the per-class entry, falling back to the category defaults."""
        entry = self.types.get(road_class) if road_class else None
        if entry is None:
            entry = RoadTypeConfig(width=self.width, height=self.height, color=self.color)
        return entry


class PillarConfig(_Section):
    enabled: bool = True
    radius: float = 0.5
    color: str = '#8b7355'
    spacing: float = 20.0


class BridgeConfig(_Section):
    enabled: bool = True
    height: float = 1.5
    width: float = 6.0
    color: str = '#718096'
    clearance: float = 2.0
    pillars: PillarConfig = Field(default_factory=PillarConfig, alias='pillarConfig')


class WaveConfig(_Section):
    enabled: bool = True
    amplitude: float = 0.1
    frequency: float = 1.0
    density: float = 1.0
    cap: int = 3


class WaterConfig(_Section):
    enabled: bool = True
    height: float = 0.1
    color: str = '#4299e1'
    waves: WaveConfig = Field(default_factory=WaveConfig, alias='waveConfig')


class TreeConfig(_Section):
    enabled: bool = True
    types: tuple[str, ...] = ('oak', 'pine', 'birch')
    randomness: float = 0.5
    cap: int = 10


class VegetationConfig(_Section):
    enabled: bool = True
    height: float = 1.5
    density: float = 1.0
    color: str = '#48bb78'
    min_area: float = Field(default=5.0, alias='minArea')
    trees: TreeConfig = Field(default_factory=TreeConfig, alias='treeConfig')


class ModelConfig(_Section):
    """Complete configuration bundle for one generation pass."""
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias='global')
    projection: ProjectionConfig = Field(default_factory=ProjectionConfig,
                                         alias='coordinateSystem')
    terrain: TerrainConfig = Field(default_factory=TerrainConfig)
    buildings: BuildingConfig = Field(default_factory=BuildingConfig)
    roads: RoadConfig = Field(default_factory=RoadConfig)
    bridges: BridgeConfig = Field(default_factory=BridgeConfig)
    water: WaterConfig = Field(default_factory=WaterConfig)
    vegetation: VegetationConfig = Field(default_factory=VegetationConfig)

    @property
    def scale(self) -> float:
        """Effective generation scale (units per metre)."""
        return self.projection.scale * self.projection.render_height * self.global_.scale

    @property
    def seed(self) -> int:
        return self.global_.seed


def load_config(path=None) -> ModelConfig:
    """Load a :class:`ModelConfig` from a JSON file, or defaults when *path* is None."""
    if path is None:
        return ModelConfig()
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return ModelConfig.model_validate(data)
