from .expression import CompiledExpression, ExpressionError, compile_expression
from .body import Body
from .elements import (
    ElementPacket,
    ElemType,
    MoveType,
    PointSet,
    PanelSet,
    Collection,
    visit,
)
from .kernels import KernelConfig, blob_velocity, panel_velocity, panel_normal_influence
from .influence import SourceSet, induced_velocity
from .bem import BEM
from .diffusion import Diffusion, DiffusionConfig
from .convection import Convection
from .simulation import Simulation
from .api import BodyConfig, SimulationConfig, build_simulation
from .features import (
    SolidCircle, SolidOval, SolidSquare, BoundarySegment,
    SingleParticle, VortexBlob, LambOseenVortex,
    SinglePoint, TracerLine,
)
from .plotting import plot_snapshot
from .plotly_viz import (
    plot_snapshot_interactive,
    run_animation_interactive,
    PlotlySnapshotConfig,
)

__all__ = [
    "CompiledExpression", "ExpressionError", "compile_expression",
    "Body",
    "ElementPacket", "ElemType", "MoveType", "PointSet", "PanelSet", "Collection", "visit",
    "KernelConfig", "blob_velocity", "panel_velocity", "panel_normal_influence",
    "SourceSet", "induced_velocity",
    "BEM", "Diffusion", "DiffusionConfig", "Convection",
    "Simulation",
    "BodyConfig", "SimulationConfig", "build_simulation",
    "SolidCircle", "SolidOval", "SolidSquare", "BoundarySegment",
    "SingleParticle", "VortexBlob", "LambOseenVortex", "SinglePoint", "TracerLine",
    "plot_snapshot",
    "plot_snapshot_interactive", "run_animation_interactive", "PlotlySnapshotConfig",
]
