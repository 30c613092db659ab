from pydantic import BaseModel, Field, StrictBool, ValidationError, field_validator
from typing import Optional, Dict, Any, Union
import logging

logger = logging.getLogger(__name__)

# Конверт ответа удаленного хранилища: {success, data|error}
class ApiResponse(BaseModel):
    success: StrictBool = False
    data: Optional[Any] = None
    error: Optional[Any] = None
    message: Optional[str] = None

def parse_envelope(raw: Any) -> ApiResponse:
    """Разобрать ответ; все, что не содержит success: true, считается ошибкой"""
    if isinstance(raw, ApiResponse):
        return raw
    if not isinstance(raw, dict):
        return ApiResponse(success=False, error="Malformed response")
    try:
        return ApiResponse.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Invalid response envelope: {e}")
        return ApiResponse(success=False, error="Malformed response")

# Записи прогресса в формате базы данных
class RemoteProgressEntry(BaseModel):
    track_id: str
    day_number: int = Field(..., ge=0)
    completed: bool = False
    tasks_completed: Optional[Union[str, Dict[str, Any]]] = None
    study_time: Optional[int] = None
    completion_date: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator('track_id', mode='before')
    @classmethod
    def coerce_track_id(cls, v):
        if v is None:
            raise ValueError('track_id обязателен')
        return str(v)

    @field_validator('completed', mode='before')
    @classmethod
    def coerce_completed(cls, v):
        # SQLite отдает 0/1, null означает "не завершен"
        return bool(v) if v is not None else False

class RemoteStats(BaseModel):
    total_study_time: Optional[int] = 0
    questions_studied: Optional[int] = 0
    current_streak: Optional[int] = 0
    longest_streak: Optional[int] = 0
    last_activity: Optional[str] = None

    def to_analytics(self) -> Dict[str, Any]:
        return {
            'totalStudyTime': self.total_study_time or 0,
            'questionsStudied': self.questions_studied or 0,
            'currentStreak': self.current_streak or 0,
            'longestStreak': self.longest_streak or 0,
            'lastActivity': self.last_activity
        }

# Модели для создания/обновления
class ProgressUpdateRequest(BaseModel):
    track_id: str
    day_number: int = Field(..., ge=0)
    completed: bool
    tasks_completed: str = "{}"
    study_time: int = Field(0, ge=0)
    completion_date: Optional[str] = None

    def progress_data(self) -> Dict[str, Any]:
        return {
            'completed': self.completed,
            'tasks_completed': self.tasks_completed,
            'study_time': self.study_time,
            'completion_date': self.completion_date
        }

class QuestionProgressRequest(BaseModel):
    question_id: str
    status: str = "completed"
    time_spent: int = Field(5, ge=0)
    studied_at: str

# Документ экспорта/импорта
class ExportDocument(BaseModel):
    progress: Dict[str, Any]
    dashboardData: Dict[str, Any]
    settings: Dict[str, Any]
    exportedAt: Optional[str] = None
    version: Optional[str] = None
