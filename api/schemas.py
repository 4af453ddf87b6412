from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Checkbox fields submitted by the upload form. Browsers send "on" when checked
# and omit the field otherwise.
CHECKBOX_FIELDS = ("use_cloaking", "use_antibot", "use_preview", "use_visit_counter")


class VideoMetadata(BaseModel):
    """
    Metadata submitted alongside an uploaded video.

    Field aliases match the upload form's field names (camelCase). Blank
    optional strings are stored as NULL so that "not configured" has a single
    representation in the database.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    redirect_url: Optional[str] = Field(default=None, alias="redirectUrl")
    description: str = ""
    banner_script_1: Optional[str] = Field(default=None, alias="bannerScript1")
    banner_script_2: Optional[str] = Field(default=None, alias="bannerScript2")
    banner_script_3: Optional[str] = Field(default=None, alias="bannerScript3")
    banner_script_4: Optional[str] = Field(default=None, alias="bannerScript4")
    banner_script_5: Optional[str] = Field(default=None, alias="bannerScript5")
    facebook_redirect_url: Optional[str] = Field(default=None, alias="facebookRedirectUrl")
    use_cloaking: bool = Field(default=False, alias="useCloaking")
    use_antibot: bool = Field(default=False, alias="useAntibot")
    use_preview: bool = Field(default=False, alias="usePreview")
    use_visit_counter: bool = Field(default=False, alias="useVisitCounter")
    preview_title: Optional[str] = Field(default=None, alias="previewTitle")
    preview_image: Optional[str] = Field(default=None, alias="previewImage")
    visit_counter_script: Optional[str] = Field(default=None, alias="visitCounterScript")

    @field_validator(*CHECKBOX_FIELDS, mode="before")
    @classmethod
    def parse_checkbox(cls, v: Any) -> bool:
        """Only the literal "on" (or a real boolean) counts as checked."""
        if isinstance(v, bool):
            return v
        if v is None:
            return False
        return str(v) == "on"

    @field_validator(
        "redirect_url",
        "facebook_redirect_url",
        "preview_title",
        "preview_image",
        "banner_script_1",
        "banner_script_2",
        "banner_script_3",
        "banner_script_4",
        "banner_script_5",
        "visit_counter_script",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v)
        return v if v.strip() else None

    @field_validator("description", mode="before")
    @classmethod
    def description_default(cls, v: Any) -> str:
        return "" if v is None else str(v)

    def to_row(self) -> Dict[str, Any]:
        """Column values for the videos table."""
        return self.model_dump(by_alias=False)


class UploadResponse(BaseModel):
    """JSON body returned by POST /upload."""

    success: bool
    url: Optional[str] = None
    message: Optional[str] = None
