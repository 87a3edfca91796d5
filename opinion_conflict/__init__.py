"""Opinion conflict detection for personal knowledge cards.

Finds cards of the same owner that disagree with each other, builds
per-topic belief profiles from the owner's cards, and flags new cards that
conflict with those beliefs. A cheap lexical gate (TF-IDF cosine over
mixed-script text) decides which pairs are worth an opinion-analysis call.
"""

from opinion_conflict.analyzer import (
    AnalysisMode,
    ConflictVerdict,
    HeuristicOpinionAnalyzer,
    LLMOpinionAnalyzer,
    OpinionAnalyzer,
)
from opinion_conflict.candidates import Candidate, ConflictCandidateSelector, DetectionMode
from opinion_conflict.classifier import ClassifiedConflict, ConflictClassifier
from opinion_conflict.clustering import DisjointSet
from opinion_conflict.config import Settings
from opinion_conflict.detection import ConflictDetectionService
from opinion_conflict.engine import ConflictEngine
from opinion_conflict.errors import (
    CollaboratorError,
    ConflictEngineError,
    ConstraintViolation,
    NotFoundError,
)
from opinion_conflict.models import (
    BeliefType,
    Card,
    CardConflict,
    CardConflictType,
    CognitiveConflict,
    CognitiveConflictType,
    UserCognitiveProfile,
)
from opinion_conflict.profiles import CognitiveProfileService
from opinion_conflict.similarity import TextSimilarity
from opinion_conflict.store import ConflictStore, InMemoryConflictStore, create_store
from opinion_conflict.tokenizer import Tokenizer

__version__ = "0.1.0"
__all__ = [
    "ConflictEngine",
    "Settings",
    "Card",
    "CardConflict",
    "CardConflictType",
    "CognitiveConflict",
    "CognitiveConflictType",
    "UserCognitiveProfile",
    "BeliefType",
    "Tokenizer",
    "TextSimilarity",
    "DisjointSet",
    "Candidate",
    "DetectionMode",
    "ConflictCandidateSelector",
    "AnalysisMode",
    "ConflictVerdict",
    "OpinionAnalyzer",
    "LLMOpinionAnalyzer",
    "HeuristicOpinionAnalyzer",
    "ClassifiedConflict",
    "ConflictClassifier",
    "ConflictDetectionService",
    "CognitiveProfileService",
    "ConflictStore",
    "InMemoryConflictStore",
    "create_store",
    "ConflictEngineError",
    "NotFoundError",
    "CollaboratorError",
    "ConstraintViolation",
]
