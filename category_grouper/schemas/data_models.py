"""
data_models.py

Pydantic data models for the category grouper.

Schema Design:
- Input: items as produced by the embedding indexer / vector store
- Output: group records consumed verbatim by the CSV writer
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# INPUT MODELS
# =============================================================================


class Item(BaseModel):
    """Named item with its embedding vector."""

    id: str = Field(..., description="Original item identifier")
    name: str = Field(..., description="Display name")
    embedding: List[float] = Field(default_factory=list, description="Embedding vector")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value):
        """Numeric ids from CSV/JSON are kept as strings."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


# =============================================================================
# CLUSTER MODELS
# =============================================================================


class ClusterMember(BaseModel):
    """Member of a named cluster."""

    id: str
    name: str


class NamedCluster(BaseModel):
    """Cluster with its generated label."""

    id: int = Field(..., description="Cluster id")
    name: str = Field(..., description="Generated category label")
    members: List[ClusterMember] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)

    def to_record(self) -> "GroupRecord":
        """Flatten into an output row."""
        return GroupRecord(
            group_id=self.id,
            group_name=self.name,
            members_id=[member.id for member in self.members],
            members_name=[member.name for member in self.members],
        )


# =============================================================================
# OUTPUT MODELS
# =============================================================================


class GroupRecord(BaseModel):
    """Output row: one group with its ordered member ids and names."""

    group_id: int = Field(..., ge=1)
    group_name: str
    members_id: List[str] = Field(default_factory=list)
    members_name: List[str] = Field(default_factory=list)


class GroupingResult(BaseModel):
    """Results of one clustering run."""

    total_items: int = Field(..., ge=0)
    min_cluster_size: int = Field(..., ge=1)
    clusters: List[GroupRecord] = Field(default_factory=list, description="Pre-merge groups")
    merged_clusters: List[GroupRecord] = Field(default_factory=list, description="Post-merge groups")
    outlier_count: int = Field(default=0, ge=0)
    quality_metrics: Dict[str, float] = Field(default_factory=dict)
    processing_time_ms: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        """True when no cluster survived (not an error)."""
        return not self.clusters

    @property
    def clustered_items(self) -> int:
        return self.total_items - self.outlier_count
