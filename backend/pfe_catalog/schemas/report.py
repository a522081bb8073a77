from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

# ===================== 表单常量 =====================

SPECIALTIES = [
    "Informatique",
    "Télécommunications",
    "Électromécanique",
    "Génie Civil",
    "Génie Industriel",
]

DEPARTMENTS = [
    "Département Informatique",
    "Département Électrique",
    "Département Mécanique",
    "Département Civil",
]

MAX_AUTHORS = 3
MIN_KEYWORDS = 5
MAX_KEYWORDS = 10  # 关键词输入框数量上限
DEFAULT_KEYWORD_SLOTS = 5
ABSTRACT_MIN_LENGTH = 200
ABSTRACT_MAX_LENGTH = 500


class ReportStatus(str, Enum):
    """报告状态：pending 为初始态，validated / rejected 为终态"""
    PENDING = "pending"
    VALIDATED = "validated"
    REJECTED = "rejected"


class ValidationAction(str, Enum):
    VALIDATED = "validated"
    REJECTED = "rejected"
    MODIFICATION_REQUESTED = "modification_requested"  # 保留值，没有对应的状态迁移


class Author(BaseModel):
    name: str = ""
    email: str = ""


class ReportForm(BaseModel):
    """
    提交表单模型

    主要功能：
    描述学生正在填写的表单状态，同时也是草稿 draft_data 的结构（camelCase 键名）。
    """
    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    authors: List[Author] = Field(default_factory=lambda: [Author()])
    academic_supervisor: str = Field(default="", alias="academicSupervisor")
    industrial_supervisor: str = Field(default="", alias="industrialSupervisor")
    academic_year: str = Field(default="", alias="academicYear")
    specialty: str = ""
    department: str = ""
    keywords: List[str] = Field(default_factory=lambda: [""] * DEFAULT_KEYWORD_SLOTS)
    abstract: str = ""
    defense_date: str = Field(default="", alias="defenseDate")
    company: str = ""
    video_url: str = Field(default="", alias="videoUrl")

    @field_validator(
        "title", "academic_supervisor", "industrial_supervisor", "academic_year",
        "specialty", "department", "abstract", "defense_date", "company", "video_url",
        mode="before"
    )
    @classmethod
    def null_as_blank(cls, value):
        # 旧草稿里的 null 视为未填写
        return "" if value is None else value

    def to_draft_data(self) -> dict:
        """序列化为 draft_data（camelCase）"""
        return self.model_dump(by_alias=True)


class Report(BaseModel):
    """
    报告数据模型

    主要功能：
    对应 reports 表，包括基本信息、状态机字段以及浏览统计。
    """
    id: str
    title: str
    authors: List[Author] = []
    academic_supervisor: str = ""
    industrial_supervisor: Optional[str] = None
    academic_year: str = ""
    specialty: str = ""
    department: str = ""
    keywords: List[str] = []
    abstract: str = ""
    defense_date: Optional[str] = None
    company: Optional[str] = None
    pdf_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None

    status: ReportStatus = ReportStatus.PENDING
    rejection_reason: Optional[str] = None  # 仅 rejected
    submitted_by: str
    validated_by: Optional[str] = None  # validate 与 reject 都会设置

    views_count: int = 0

    submitted_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None  # 仅 validated
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# 检查清单标签（与前端复选框一致）
CHECKLIST_LABELS: Dict[str, str] = {
    "graphicCharter": "Respect de la charte graphique ESPRIM",
    "sections": "Présence de toutes les sections obligatoires",
    "quality": "Qualité rédactionnelle acceptable",
    "contentRelevance": "Conformité du contenu avec le sujet",
    "appropriate": "Absence de contenu inapproprié",
}


class Checklist(BaseModel):
    """验证检查清单（五项全部为 True 才能通过）"""
    model_config = ConfigDict(populate_by_name=True)

    graphic_charter: bool = Field(default=False, alias="graphicCharter")
    sections: bool = False
    quality: bool = False
    content_relevance: bool = Field(default=False, alias="contentRelevance")
    appropriate: bool = False

    def snapshot(self) -> Dict[str, bool]:
        """写入 validation_history.checklist 的快照"""
        return self.model_dump(by_alias=True)

    def unmet(self) -> List[str]:
        """返回未勾选的项（camelCase 键名）"""
        return [key for key, checked in self.snapshot().items() if not checked]


class ValidationHistory(BaseModel):
    """validation_history 表记录，只追加，不修改、不删除"""
    id: Optional[str] = None
    report_id: str
    validator_id: str
    action: ValidationAction
    comments: Optional[str] = None
    checklist: Optional[Dict[str, bool]] = None  # 仅 validated
    created_at: Optional[datetime] = None


class ValidateRequest(BaseModel):
    checklist: Checklist = Field(default_factory=Checklist)
    comments: str = ""


class RejectRequest(BaseModel):
    comments: str = ""


class Favorite(BaseModel):
    id: Optional[str] = None
    user_id: str
    report_id: str
    created_at: Optional[datetime] = None


class SortBy(str, Enum):
    DATE_DESC = "date_desc"
    POPULAR = "popular"
    TITLE = "title"


class CatalogFilters(BaseModel):
    """目录筛选状态，空字符串表示不过滤"""
    model_config = ConfigDict(populate_by_name=True)

    academic_year: str = Field(default="", alias="academicYear")
    specialty: str = ""
    sort_by: SortBy = Field(default=SortBy.DATE_DESC, alias="sortBy")
    search_term: str = Field(default="", alias="searchTerm")
