"""mediafx — media effects pipeline over ffmpeg.

Public API:
    probe, probe_many                                   — media inspection
    merge, trim, transition_apply, fade, image_to_video — video operations
    mix_audio, extract_audio, separate_audio            — audio operations
    add_text, add_subtitle                              — text overlays
    stamp_image, overlay_video                          — image/video overlays
    execute_item, execute_batch                         — batch engine
    check_transition_support                            — capability checks
    MediaContext, Settings                              — shared services
    MediaFXError                                        — structured errors
"""

from mediafx.probe import probe, probe_many
from mediafx.operations import merge, trim, transition_apply, fade, image_to_video
from mediafx.audio_ops import mix_audio, extract_audio, separate_audio
from mediafx.text_ops import add_text, add_subtitle
from mediafx.overlay_ops import stamp_image, overlay_video
from mediafx.engine import execute_item, execute_batch
from mediafx.capabilities import check_transition_support
from mediafx.config import Settings
from mediafx.context import MediaContext
from mediafx.errors import (
    MediaFXError,
    ValidationError,
    NotFound,
    ResolutionError,
    ProbeError,
    EngineExecutionError,
    UnsupportedCapability,
)
from mediafx.models import (
    MediaProbe,
    VideoGeometry,
    EngineCapabilities,
    TransitionSupport,
    Placement,
    TextEntry,
    TextStyle,
    OperationResult,
    BinaryPayload,
    WorkItem,
    ItemResult,
)

__version__ = "0.1.0"

__all__ = [
    # Introspection
    "probe",
    "probe_many",
    "check_transition_support",
    # Video operations
    "merge",
    "trim",
    "transition_apply",
    "fade",
    "image_to_video",
    # Audio operations
    "mix_audio",
    "extract_audio",
    "separate_audio",
    # Overlays
    "add_text",
    "add_subtitle",
    "stamp_image",
    "overlay_video",
    # Batch engine
    "execute_item",
    "execute_batch",
    # Services
    "Settings",
    "MediaContext",
    # Types
    "MediaProbe",
    "VideoGeometry",
    "EngineCapabilities",
    "TransitionSupport",
    "Placement",
    "TextEntry",
    "TextStyle",
    "OperationResult",
    "BinaryPayload",
    "WorkItem",
    "ItemResult",
    # Errors
    "MediaFXError",
    "ValidationError",
    "NotFound",
    "ResolutionError",
    "ProbeError",
    "EngineExecutionError",
    "UnsupportedCapability",
]
