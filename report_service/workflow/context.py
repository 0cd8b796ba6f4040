"""Dependencies shared by workflow nodes"""
from dataclasses import dataclass, field
from typing import Optional

from langchain_core.runnables import RunnableConfig

from ..core.analysis_planner import AnalysisPlanner
from ..core.analytics import AnalyticsService
from ..core.enrichment import DataEnrichmentService
from ..core.prompt_analyzer import PromptAnalyzer
from ..core.query_executor import QueryExecutor
from ..core.report_compositor import ReportCompositor
from ..core.sql_synthesizer import SQLSynthesizer
from ..core.table_resolver import TableRelevanceResolver
from ..exceptions import RATE_LIMIT_MESSAGE, RateLimitExceededError
from ..services.database_client import DatabaseClient
from ..services.knowledge_base import InMemoryQueryKnowledgeStore, QueryKnowledgeStore
from ..services.llm_gateway import LLMGateway
from ..services.schema_service import SchemaCache, SchemaService
from ..services.stream_publisher import ProgressPublisher


@dataclass
class PipelineContext:
    """
    Services used by the report workflow.

    The schema cache and knowledge store live as long as the context and
    are shared by every request that uses it.
    """
    gateway: LLMGateway
    db: DatabaseClient
    schema_service: SchemaService
    schema_cache: SchemaCache = field(default_factory=SchemaCache)
    knowledge_store: QueryKnowledgeStore = field(default_factory=InMemoryQueryKnowledgeStore)
    analyzer: Optional[PromptAnalyzer] = None
    planner: Optional[AnalysisPlanner] = None
    resolver: Optional[TableRelevanceResolver] = None
    synthesizer: Optional[SQLSynthesizer] = None
    enrichment: Optional[DataEnrichmentService] = None
    executor: Optional[QueryExecutor] = None
    analytics: Optional[AnalyticsService] = None
    compositor: Optional[ReportCompositor] = None

    def __post_init__(self):
        self.analyzer = self.analyzer or PromptAnalyzer(self.gateway)
        self.planner = self.planner or AnalysisPlanner(self.gateway)
        self.resolver = self.resolver or TableRelevanceResolver(self.gateway)
        self.synthesizer = self.synthesizer or SQLSynthesizer(self.gateway, self.knowledge_store)
        self.enrichment = self.enrichment or DataEnrichmentService(self.db)
        self.executor = self.executor or QueryExecutor(self.db, self.enrichment)
        self.analytics = self.analytics or AnalyticsService()
        self.compositor = self.compositor or ReportCompositor(self.gateway)


def get_context(config: RunnableConfig) -> PipelineContext:
    return config["configurable"]["context"]


def get_publisher(config: RunnableConfig) -> ProgressPublisher:
    return config["configurable"].get("publisher") or ProgressPublisher()


def error_state(error: Exception, error_code: str) -> dict:
    """State update that stops the workflow"""
    if isinstance(error, RateLimitExceededError):
        return {"error": str(error) or RATE_LIMIT_MESSAGE, "error_code": "RATE_LIMIT_EXCEEDED"}
    return {"error": str(error) or type(error).__name__, "error_code": error_code}
