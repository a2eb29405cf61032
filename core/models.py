"""
Data model shared by the fetchers, processors and the pipeline
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar


class SourceType(str, Enum):
    """Modality a piece of text or an entity came from"""
    AUDIO = "audio"
    VISUAL = "visual"
    METADATA = "metadata"


class EntityType(str, Enum):
    TOOLS_PLATFORMS = "tools_platforms"
    WEBSITES_URLS = "websites_urls"
    BRANDS_PRODUCTS = "brands_products"
    PEOPLE_ORGS = "people_orgs"
    LISTS_SEQUENCES = "lists_sequences"
    STEPS_PROCESSES = "steps_processes"
    COMPARISONS = "comparisons"
    NUMBERS_METRICS = "numbers_metrics"
    PRICES_COSTS = "prices_costs"
    DATES_TIMELINES = "dates_timelines"
    CONTACT_INFO = "contact_info"
    RESOURCES_LINKS = "resources_links"
    RECOMMENDATIONS = "recommendations"


@dataclass(frozen=True)
class MediaReference:
    """Result of a successful fetch: the direct media URL plus optional metadata"""
    source_url: str
    video_url: str
    title: Optional[str] = None
    caption: Optional[str] = None
    thumbnail_url: Optional[str] = None
    duration: Optional[float] = None
    strategy: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TemporaryArtifact:
    """
    A file on local disk or an object in the transient remote store

    identifier is a filesystem path for local artifacts and a storage
    path for remote ones; bucket is only set for remote artifacts.
    """
    identifier: str
    producer: str
    remote: bool = False
    bucket: Optional[str] = None
    size_bytes: Optional[int] = None


@dataclass(frozen=True)
class FrameSample:
    timestamp: float
    artifact: TemporaryArtifact

    @property
    def path(self) -> str:
        return self.artifact.identifier


@dataclass(frozen=True)
class ModalityText:
    source_type: SourceType
    text: str
    timestamp: Optional[float] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class Entity:
    type: EntityType
    value: str
    context: str
    source_type: SourceType
    timestamp: Optional[float] = None
    confidence: float = 0.85

    def normalized_value(self) -> str:
        return self.value.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'value': self.value,
            'context': self.context,
            'source_type': self.source_type.value,
            'timestamp': self.timestamp,
            'confidence': self.confidence,
        }


@dataclass
class AudioArtifact:
    artifact: TemporaryArtifact
    duration: Optional[float]
    method: str  # "copy" or "reencode"


@dataclass
class FrameExtractionResult:
    frames: List[FrameSample]
    requested: int

    @property
    def success_ratio(self) -> float:
        if not self.requested:
            return 0.0
        return len(self.frames) / self.requested


@dataclass
class Transcript:
    text: str
    duration: float
    language: Optional[str] = None


@dataclass
class CaptionAnalysis:
    key_points: List[str] = field(default_factory=list)
    hashtags: List[str] = field(default_factory=list)
    mentions: List[str] = field(default_factory=list)
    urls: List[str] = field(default_factory=list)
    calls_to_action: List[str] = field(default_factory=list)
    topics: List[str] = field(default_factory=list)
    sentiment: str = "neutral"
    has_important_info: bool = False
    summary: str = ""
    method: str = "ai"  # "ai" or "regex"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MergedText:
    text: str
    has_audio_transcript: bool = False
    has_visual_text: bool = False
    has_metadata: bool = False

    @property
    def sources(self) -> List[str]:
        sources = []
        if self.has_audio_transcript:
            sources.append(SourceType.AUDIO.value)
        if self.has_visual_text:
            sources.append(SourceType.VISUAL.value)
        if self.has_metadata:
            sources.append(SourceType.METADATA.value)
        return sources


@dataclass
class QuizQuestion:
    question: str
    options: List[str]
    answer: str


@dataclass
class Pitfall:
    pitfall: str
    solution: str


@dataclass
class StructuredSummary:
    title: str
    summary: str
    detailed_explanation: str = ""
    key_points: List[str] = field(default_factory=list)
    examples: List[str] = field(default_factory=list)
    related_topics: List[str] = field(default_factory=list)
    actionable_checklist: List[str] = field(default_factory=list)
    quiz_questions: List[QuizQuestion] = field(default_factory=list)
    quick_reference_card: List[str] = field(default_factory=list)
    learning_path: List[str] = field(default_factory=list)
    common_pitfalls: List[Pitfall] = field(default_factory=list)
    glossary: Dict[str, str] = field(default_factory=dict)
    interactive_prompt_suggestions: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    suggested_folder: str = "General"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


T = TypeVar('T')


class OutcomeStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"


@dataclass
class StageOutcome(Generic[T]):
    """Result of a best-effort stage: either a value or a degraded fallback with the cause"""
    status: OutcomeStatus
    value: T
    error: Optional[BaseException] = None

    @classmethod
    def ok(cls, value: T) -> 'StageOutcome[T]':
        return cls(OutcomeStatus.OK, value)

    @classmethod
    def degraded(cls, fallback: T, error: Optional[BaseException] = None) -> 'StageOutcome[T]':
        return cls(OutcomeStatus.DEGRADED, fallback, error)

    @property
    def is_ok(self) -> bool:
        return self.status == OutcomeStatus.OK


@dataclass
class StructuredKnowledgeArtifact:
    """Final result of one pipeline run"""
    source_url: str
    media: MediaReference
    summary: StructuredSummary
    transcript: str = ""
    frame_texts: List[ModalityText] = field(default_factory=list)
    caption_analysis: Optional[CaptionAnalysis] = None
    entities: List[Entity] = field(default_factory=list)
    categorized_entities: Dict[str, List[Entity]] = field(default_factory=dict)
    visual_insights: Dict[str, Any] = field(default_factory=dict)
    thumbnail_url: Optional[str] = None
    processing: Dict[str, Any] = field(default_factory=dict)
    timings: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source_url': self.source_url,
            'media': self.media.to_dict(),
            'summary': self.summary.to_dict(),
            'transcript': self.transcript,
            'frame_texts': [
                {'text': item.text, 'timestamp': item.timestamp, 'confidence': item.confidence}
                for item in self.frame_texts
            ],
            'caption_analysis': self.caption_analysis.to_dict() if self.caption_analysis else None,
            'entities': [entity.to_dict() for entity in self.entities],
            'categorized_entities': {
                key: [entity.to_dict() for entity in values]
                for key, values in self.categorized_entities.items()
            },
            'visual_insights': self.visual_insights,
            'thumbnail_url': self.thumbnail_url,
            'processing': self.processing,
            'timings': self.timings,
        }
