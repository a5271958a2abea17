"""Task data model for tasklens."""

from datetime import date
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field, field_validator


class StatusCategory(str, Enum):
    """Built-in status category keys.

    Category keys are user-configurable, so Task.status_category is a plain
    string; these are the keys every installation starts with.
    """
    OPEN = "open"
    IN_PROGRESS = "inProgress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    OTHER = "other"


class Task(BaseModel):
    """Normalized, read-only task record supplied by the task source."""

    id: str = Field(..., description="Unique task identifier")
    text: str = Field(..., description="Display text of the task")
    status_category: str = Field(StatusCategory.OPEN.value, description="Resolved status category key")
    status_symbol: Optional[str] = Field(None, description="Raw checkbox symbol, if known")
    priority: Optional[int] = Field(None, ge=1, le=4, description="Priority 1 (highest) to 4, or None")
    due_date: Optional[date] = Field(None, description="Due date")
    created_date: Optional[date] = Field(None, description="Creation date")
    completed_date: Optional[date] = Field(None, description="Completion date")
    folder: Optional[str] = Field(None, description="Folder path of the note holding the task")
    tags: List[str] = Field(default_factory=list, description="Task-level tags")
    note_tags: List[str] = Field(default_factory=list, description="Tags of the containing note")
    parent_id: Optional[str] = Field(None, description="Parent task id when this is a subtask")
    recurring: bool = Field(False, description="Whether the task repeats")

    @field_validator("status_category", mode="before")
    @classmethod
    def _coerce_status_category(cls, v):
        if isinstance(v, StatusCategory):
            return v.value
        return v

    @property
    def is_subtask(self) -> bool:
        return self.parent_id is not None

    def all_tags(self) -> List[str]:
        """Task tags followed by note tags."""
        return [*self.tags, *self.note_tags]

    class Config:
        """Pydantic configuration."""
        frozen = True
