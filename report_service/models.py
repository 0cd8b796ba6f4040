"""Pydantic models for API requests, pipeline data and responses"""
from typing import Annotated, Optional, Dict, Any, List, Literal, Union
from pydantic import BaseModel, BeforeValidator, Field, field_validator


def _coerce_name_list(value: Any) -> List[str]:
    """Accept a list of strings or of {name: ...} objects from LLM output"""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    names = []
    for item in value if isinstance(value, list) else [value]:
        if isinstance(item, str):
            names.append(item)
        elif isinstance(item, dict):
            name = item.get("name") or item.get("table") or item.get("field") or item.get("column")
            if name:
                names.append(str(name))
        elif item is not None:
            names.append(str(item))
    return names


def _coerce_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


NameList = Annotated[List[str], BeforeValidator(_coerce_name_list)]
LooseList = Annotated[List[Any], BeforeValidator(_coerce_list)]


# ============================================================================
# Request Models
# ============================================================================

class ConversationMessage(BaseModel):
    """One prior turn of the conversation"""
    role: str = "user"
    content: str = ""


class ReportRequest(BaseModel):
    """Request to generate a report from a natural language prompt"""
    prompt: Optional[str] = Field(
        None,
        description="User's natural language question"
    )
    conversationHistory: List[ConversationMessage] = Field(default_factory=list)

    @field_validator("conversationHistory", mode="before")
    @classmethod
    def _default_history(cls, value):
        return value or []


# ============================================================================
# Schema Models
# ============================================================================

class ColumnInfo(BaseModel):
    """Column as reported by information_schema"""
    name: str
    data_type: str
    is_nullable: Optional[str] = None
    column_default: Optional[str] = None


class TableSchema(BaseModel):
    """Ordered columns and constraints of one table"""
    columns: List[ColumnInfo] = Field(default_factory=list)
    constraints: List[Dict[str, Any]] = Field(default_factory=list)


class Relationship(BaseModel):
    """Foreign-key edge from table.column to referenced_table.referenced_column"""
    table: str
    column: str
    referenced_table: str
    referenced_column: str


class MinimalColumn(BaseModel):
    name: str
    type: str


class MinimalSchema(BaseModel):
    """Schema view restricted to the tables relevant to one request"""
    tables: Dict[str, List[MinimalColumn]] = Field(default_factory=dict)
    relationships: List[Relationship] = Field(default_factory=list)

    def table_names(self) -> List[str]:
        return list(self.tables.keys())


class SchemaSnapshot(BaseModel):
    """Full database schema together with its foreign-key relationships"""
    tables: Dict[str, TableSchema] = Field(default_factory=dict)
    relationships: List[Relationship] = Field(default_factory=list)

    def table_names(self) -> List[str]:
        return list(self.tables.keys())

    def has_table(self, name: str) -> bool:
        return name in self.tables

    def minimal(self, table_names: List[str]) -> MinimalSchema:
        """
        Restrict the snapshot to the given tables.

        Only relationships whose both ends are in the subset are kept.
        """
        selected = [name for name in table_names if name in self.tables]
        keep = set(selected)
        return MinimalSchema(
            tables={
                name: [
                    MinimalColumn(name=column.name, type=column.data_type)
                    for column in self.tables[name].columns
                ]
                for name in selected
            },
            relationships=[
                rel for rel in self.relationships
                if rel.table in keep and rel.referenced_table in keep
            ]
        )


# ============================================================================
# Prompt Analysis Models
# ============================================================================

class IntentClassification(BaseModel):
    type: str = "descriptive"
    metrics: LooseList = Field(default_factory=list)


class EntitiesAndRelationships(BaseModel):
    entities: LooseList = Field(default_factory=list)
    relationships: LooseList = Field(default_factory=list)
    timePeriods: LooseList = Field(default_factory=list)


class DataRequirements(BaseModel):
    relevantTables: NameList = Field(default_factory=list)
    relevantFields: NameList = Field(default_factory=list)
    aggregations: LooseList = Field(default_factory=list)
    filters: LooseList = Field(default_factory=list)


class ComplexityAssessment(BaseModel):
    level: str = "moderate"
    requiresMultipleQueries: bool = False
    requiresAdvancedAnalysis: bool = False


class PromptAnalysis(BaseModel):
    """Structured reading of the user's question"""
    coreQuestion: str = ""
    intentClassification: IntentClassification = Field(default_factory=IntentClassification)
    entitiesAndRelationships: EntitiesAndRelationships = Field(default_factory=EntitiesAndRelationships)
    dataRequirements: DataRequirements = Field(default_factory=DataRequirements)
    complexityAssessment: ComplexityAssessment = Field(default_factory=ComplexityAssessment)

    @classmethod
    def default_for(cls, prompt: str) -> "PromptAnalysis":
        return cls(coreQuestion=prompt)


# ============================================================================
# Analysis Decision Models
# ============================================================================

class DecisionIntent(BaseModel):
    type: str = "descriptive"
    confidence: float = 0.5
    reasoning: str = ""


class DataAssessment(BaseModel):
    availableFields: NameList = Field(default_factory=list)
    dataTypes: Dict[str, Any] = Field(default_factory=dict)
    sufficiencyScore: float = 1.0
    qualityIssues: LooseList = Field(default_factory=list)


class AnalysisStrategy(BaseModel):
    recommendedTechniques: NameList = Field(default_factory=list)
    visualizations: LooseList = Field(default_factory=list)


class AdditionalDataRequirements(BaseModel):
    needsAdditionalQuery: bool = False
    additionalQueryDescription: Optional[str] = None


class AnalysisDecisions(BaseModel):
    """How the result set should be analyzed"""
    intentClassification: DecisionIntent = Field(default_factory=DecisionIntent)
    dataAssessment: DataAssessment = Field(default_factory=DataAssessment)
    analysisStrategy: AnalysisStrategy = Field(default_factory=AnalysisStrategy)
    dataRequirements: AdditionalDataRequirements = Field(default_factory=AdditionalDataRequirements)
    calculationsNeeded: NameList = Field(default_factory=lambda: ["basic statistics"])
    analysisSteps: NameList = Field(default_factory=lambda: ["Basic data analysis"])


# ============================================================================
# Enrichment Models
# ============================================================================

ColumnType = Literal["number", "string", "boolean", "date"]
ColumnFormat = Literal["currency", "percent", "integer", "decimal", "date", "text"]


class ColumnMetadata(BaseModel):
    """Inferred type and display hints for a result column"""
    type: ColumnType = "string"
    format: ColumnFormat = "text"
    isId: bool = False
    isName: bool = False
    displayName: str = ""
    distinctCount: int = 0


class TableStructure(BaseModel):
    """Presentation layout derived from column metadata"""
    columns: List[str] = Field(default_factory=list)
    primaryKey: Optional[str] = None
    displayColumns: List[str] = Field(default_factory=list)
    summaryColumns: List[str] = Field(default_factory=list)
    groupableColumns: List[str] = Field(default_factory=list)
    sortableColumns: List[str] = Field(default_factory=list)


class ForeignKeyReference(BaseModel):
    """Result column that points at another table"""
    column: str
    referenced_table: str
    referenced_column: str = "id"


class BatchQuery(BaseModel):
    id: str
    sql: str


class BatchQueryResult(BaseModel):
    """Outcome of one query in a batch"""
    id: str
    success: bool
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    rowCount: int = 0
    error: Optional[str] = None


class ExecutionResult(BaseModel):
    """Rows returned for a request together with how they were obtained"""
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    sql_used: str = ""
    fallback_used: bool = False
    message: Optional[str] = None
    related_data: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    error: Optional[str] = None


class KnowledgeBaseEntry(BaseModel):
    """A query that previously answered a prompt with at least one row"""
    query: str
    userPrompt: str
    tables: List[str] = Field(default_factory=list)
    joins: List[str] = Field(default_factory=list)
    whereConditions: List[str] = Field(default_factory=list)
    resultCount: int = 0
    timestamp: str


# ============================================================================
# Insight Models
# ============================================================================

class NumericSummaryInsight(BaseModel):
    type: Literal["numeric_summary"] = "numeric_summary"
    field: str
    min: float
    max: float
    avg: float
    sum: float


class CategoryShare(BaseModel):
    value: str
    count: int
    percentage: str


class CategoricalDistributionInsight(BaseModel):
    type: Literal["categorical_distribution"] = "categorical_distribution"
    field: str
    uniqueValues: int
    topValues: List[CategoryShare]


class CorrelationPair(BaseModel):
    fields: List[str]
    coefficient: float
    strength: str


class CorrelationsInsight(BaseModel):
    type: Literal["correlations"] = "correlations"
    pairs: List[CorrelationPair]


class OutliersInsight(BaseModel):
    type: Literal["outliers"] = "outliers"
    field: str
    method: str
    count: int
    values: List[float]


class DominantCategoryInsight(BaseModel):
    type: Literal["dominant_category"] = "dominant_category"
    field: str
    value: str
    share: float


class TimeRangeInsight(BaseModel):
    type: Literal["time_range"] = "time_range"
    field: str
    start: str
    end: str
    spanDays: int


class DataCompletenessInsight(BaseModel):
    type: Literal["data_completeness"] = "data_completeness"
    completeness: float
    missingByField: Dict[str, int]


Insight = Annotated[
    Union[
        NumericSummaryInsight,
        CategoricalDistributionInsight,
        CorrelationsInsight,
        OutliersInsight,
        DominantCategoryInsight,
        TimeRangeInsight,
        DataCompletenessInsight,
    ],
    Field(discriminator="type"),
]


# ============================================================================
# System Models
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: Literal["healthy", "degraded", "unhealthy"]
    service: str
    version: str
    timestamp: str
    dependencies: Dict[str, str]
