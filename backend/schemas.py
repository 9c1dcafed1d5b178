"""
Database Schemas for the Kalpavruksha EduHub admin portal

Each entity maps to a MongoDB collection:

    Resource -> "resources"
    ClassListing -> "classes"

Field names follow the JSON wire format (camelCase), so validated models are
dumped and stored as-is.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from errors import ValidationError

University = Literal["vtu", "autonomous"]
Scheme = Literal["2018", "2021", "2022", "2025"]
Branch = Literal["cse", "ece", "eee", "mech", "civil"]
Semester = Literal["1st", "2nd", "3rd", "4th", "5th", "6th", "7th", "8th"]
ResourceType = Literal["notes", "pyq", "handwritten", "syllabus", "important-questions"]
ClassStatus = Literal["ongoing", "upcoming"]

# Display labels used by the admin console
UNIVERSITIES = {"vtu": "VTU", "autonomous": "Autonomous"}
SCHEMES = {s: f"{s} Scheme" for s in ("2018", "2021", "2022", "2025")}
COLLEGES = {"bms": "BMS College", "rv": "RV College", "ramaiah": "Ramaiah Institute"}
BRANCHES = {
    "cse": "Computer Science",
    "ece": "Electronics and Communication (E&C)",
    "eee": "Electrical and Electronics (EEE)",
    "mech": "Mechanical",
    "civil": "Civil",
}
SEMESTERS = ["1st", "2nd", "3rd", "4th", "5th", "6th", "7th", "8th"]
RESOURCE_TYPES = {
    "notes": "Notes",
    "pyq": "Previous Year Questions",
    "handwritten": "Handwritten Notes",
    "syllabus": "Syllabus",
    "important-questions": "Important Questions",
}
CLASS_STATUSES = {"ongoing": "Ongoing", "upcoming": "Upcoming"}

RESOURCE_REQUIRED_FIELDS = ("name", "university", "type", "fileUrl")
CLASS_REQUIRED_FIELDS = ("name", "status", "schedule", "time", "university", "branch", "semester")


def _blank_as_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class _ResourceBase(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, description="Display title")
    subjectCode: Optional[str] = Field(None, description="e.g. 18MAT41, CS201")
    header: Optional[str] = Field(None, description="Module or important topic")
    branch: Optional[Branch] = None
    semester: Optional[Semester] = None
    type: ResourceType
    fileUrl: str = Field(..., min_length=1, description="Drive link or /uploads/<name>")

    @field_validator("branch", "semester", mode="before")
    @classmethod
    def _optional_enums(cls, v):
        return _blank_as_none(v)


class VtuResource(_ResourceBase):
    """VTU-affiliated resource, scoped by curriculum scheme"""
    university: Literal["vtu"]
    scheme: Scheme

    @field_validator("scheme", mode="before")
    @classmethod
    def _scheme_as_str(cls, v):
        if isinstance(v, int):
            return str(v)
        return _blank_as_none(v)


class AutonomousResource(_ResourceBase):
    """Resource for an autonomous college"""
    university: Literal["autonomous"]
    college: str = Field(..., min_length=1)

    @field_validator("college", mode="before")
    @classmethod
    def _college(cls, v):
        return _blank_as_none(v)


Resource = Annotated[Union[VtuResource, AutonomousResource], Field(discriminator="university")]

_resource_adapter: TypeAdapter = TypeAdapter(Resource)


class ClassListing(BaseModel):
    """Ongoing or upcoming class shown to students"""
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    status: ClassStatus
    schedule: str = Field(..., min_length=1, description="e.g. Mon,Wed,Fri")
    time: str = Field(..., min_length=1)
    university: University
    college: Optional[str] = None
    branch: Branch
    semester: Semester

    @field_validator("college", mode="before")
    @classmethod
    def _college(cls, v):
        return _blank_as_none(v)


def _error_details(exc: PydanticValidationError) -> List[Dict[str, str]]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def validate_resource(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        model = _resource_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid resource", details=_error_details(e)) from e
    return model.model_dump(exclude_none=True)


def validate_class(data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        model = ClassListing.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid class", details=_error_details(e)) from e
    return model.model_dump(exclude_none=True)
