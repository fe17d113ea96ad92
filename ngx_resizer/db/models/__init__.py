from ngx_resizer.db.models.attachment import Attachment
from ngx_resizer.db.models.thumbnail import Thumbnail

__all__ = ["Attachment", "Thumbnail"]
