from ngx_resizer.lib.hooks import HookRegistry, hooks
from ngx_resizer.lib.secure_link import ResizedURLBuilder
from ngx_resizer.lib.sizes import Crop, ExplicitSize, NamedSize, SizeDefinition, SizeRegistry, resolve_size

__all__ = [
    "Crop",
    "ExplicitSize",
    "HookRegistry",
    "NamedSize",
    "ResizedURLBuilder",
    "SizeDefinition",
    "SizeRegistry",
    "hooks",
    "resolve_size",
]
