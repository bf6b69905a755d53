"""Template input shared by every rendered page."""

from pydantic import BaseModel

from imageboard.models.enums import Permission
from imageboard.schemas.image import ContentEmbed, ImageInfo, TagInfo


class TemplateInput(BaseModel):
    """Values projected into the HTML templates."""

    user_name: str = ""
    user_id: int = 0
    user_permissions: int = 0
    message: str = ""
    # Pre-escaped markup (links to duplicate uploads)
    html_message: str = ""
    old_query: str = ""
    view_mode: str = ""

    image_content_info: ImageInfo | None = None
    image_content: ContentEmbed | None = None
    tags: list[TagInfo] = []
    previous_member_id: int = 0
    next_member_id: int = 0
    similar_count: int = 0

    # Search listing
    images: list[ImageInfo] = []
    total_results: int = 0
    page_start: int = 0
    page_stride: int = 0

    @property
    def is_logged_in(self) -> bool:
        return self.user_name != ""

    def has_permission(self, permission: Permission) -> bool:
        """Check a permission bit for the current user."""
        return Permission(self.user_permissions).has(permission)
