"""gesture-control - hand gesture recognition with gesture-to-action dispatch."""

__version__ = "0.1.0"

from gesture_control.landmarks import HandObservation, Joint, LandmarkFrame
from gesture_control.features import FingerStates, HandFeatureExtractor, HandFeatures
from gesture_control.gestures import GestureEvent, GestureTier, GestureType, PoseRuleSet, StaticPoseRule
from gesture_control.history import GestureFrame, GestureHistory
from gesture_control.classifier import GestureClassifier
from gesture_control.energy import EnergyMode, EnergyModeController
from gesture_control.bus import GestureEventBus, GestureObserver, GestureStatistics
from gesture_control.actions import (
    ActionConfiguration,
    ActionDispatcher,
    ActionError,
    ActionType,
    GestureActionMapping,
    LoggingActionExecutor,
    SystemActionExecutor,
)
from gesture_control.config import EngineConfig, load_config
from gesture_control.pipeline import GestureEngine
from gesture_control.recorder import LandmarkPlayer, LandmarkRecorder
from gesture_control.metrics import MetricsCollector
