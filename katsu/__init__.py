"""katsu: build bootable OS images from declarative YAML manifests.

Core pieces:
- Manifest composition (imports, per-field precedence)
- GPT partition layout application
- Chroot mount hierarchy and generated fstab
"""

__all__ = []
