"""storygesture - hands-free gesture listeners for data storytelling."""

__version__ = "0.5.0"

from storygesture.frames import Hand, HandData, HandLandmark, LandmarkFrame, SupportedGesture, TrackedPoint
from storygesture.circle_fit import CircleFitResult, CircleFitter, fit_circle
from storygesture.unistroke import RecognitionResult, Unistroke, UnistrokeRecognizer
from storygesture.events import (
    EmphasisEvent,
    ForeshadowEvent,
    GestureEvent,
    HighlightEvent,
    PlaybackEvent,
    SelectionEvent,
    StrokeEvent,
)
from storygesture.config import EngineConfig, load_engine_config
from storygesture.listener import GestureListener
from storygesture.pose import PoseHoldProtocol, PointPoseListener, RangePoseListener, RectPoseListener, ThumbPoseListener
from storygesture.stroke import StrokeListener
from storygesture.radial import RadialPlaybackListener
from storygesture.playback import LinearPlaybackListener
from storygesture.emphasis import EmphasisListener
from storygesture.highlight import HighlightListener
from storygesture.engine import GestureEngine, build_listener
from storygesture.recorder import FramePlayer, FrameRecorder
from storygesture.profiler import StageProfiler
