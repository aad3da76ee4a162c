"""Manifest data model.

Each class mirrors one section of the YAML manifest and converts to and from
the plain-dict form that manifests are parsed into and merged in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ManifestError
from .layout import PartitionLayout

DEFAULT_VOLID = "KATSU-LIVEOS"


class Bootloader(str, Enum):
    GRUB = "grub"
    GRUB_BIOS = "grub-bios"
    SYSTEMD_BOOT = "systemd-boot"
    LIMINE = "limine"

    @classmethod
    def parse(cls, value: Any) -> "Bootloader":
        if isinstance(value, Bootloader):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.GRUB


class OutputFormat(str, Enum):
    ISO = "iso"
    DEVICE = "device"
    DISK_IMAGE = "disk-image"
    FOLDER = "folder"


def _mapping(raw: Any, what: str) -> Dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ManifestError(f"{what} must be a mapping, got: {raw!r}")
    return raw


def _str_list(raw: Any, what: str) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ManifestError(f"{what} must be a list, got: {raw!r}")
    return [str(x) for x in raw]


def _opt_str(raw: Any) -> Optional[str]:
    return None if raw is None else str(raw)


def _opt_path(raw: Any) -> Optional[Path]:
    return None if raw is None else Path(str(raw))


def _opt_int(raw: Any, what: str) -> Optional[int]:
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ManifestError(f"{what} must be an integer, got: {raw!r}")
    return raw


def _opt_bool(raw: Any, what: str) -> Optional[bool]:
    if raw is None:
        return None
    if not isinstance(raw, bool):
        raise ManifestError(f"{what} must be true or false, got: {raw!r}")
    return raw


def _arch_map(raw: Any, what: str) -> Dict[str, List[str]]:
    return {str(k): _str_list(v, f"{what}.{k}") for k, v in _mapping(raw, what).items()}


@dataclass
class IsoConfig:
    volume_id: Optional[str] = None

    def get_volid(self) -> str:
        return self.volume_id or DEFAULT_VOLID

    @classmethod
    def from_dict(cls, raw: Any) -> "IsoConfig":
        return cls(volume_id=_opt_str(_mapping(raw, "iso").get("volume_id")))

    def to_dict(self) -> Dict[str, Any]:
        return {"volume_id": self.volume_id}


@dataclass
class DnfConfig:
    releasever: Optional[str] = None
    packages: List[str] = field(default_factory=list)
    arch_packages: Dict[str, List[str]] = field(default_factory=dict)
    exclude: List[str] = field(default_factory=list)
    arch_exclude: Dict[str, List[str]] = field(default_factory=dict)
    options: List[str] = field(default_factory=list)
    global_options: List[str] = field(default_factory=list)
    repodir: Optional[Path] = None

    def packages_for(self, arch: str) -> List[str]:
        return [*self.packages, *self.arch_packages.get(arch, [])]

    def excludes_for(self, arch: str) -> List[str]:
        return [*self.exclude, *self.arch_exclude.get(arch, [])]

    @classmethod
    def from_dict(cls, raw: Any) -> "DnfConfig":
        raw = _mapping(raw, "dnf")
        return cls(
            releasever=_opt_str(raw.get("releasever")),
            packages=_str_list(raw.get("packages"), "dnf.packages"),
            arch_packages=_arch_map(raw.get("arch_packages"), "dnf.arch_packages"),
            exclude=_str_list(raw.get("exclude"), "dnf.exclude"),
            arch_exclude=_arch_map(raw.get("arch_exclude"), "dnf.arch_exclude"),
            options=_str_list(raw.get("options"), "dnf.options"),
            global_options=_str_list(raw.get("global_options"), "dnf.global_options"),
            repodir=_opt_path(raw.get("repodir")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "releasever": self.releasever,
            "packages": list(self.packages),
            "arch_packages": {k: list(v) for k, v in self.arch_packages.items()},
            "exclude": list(self.exclude),
            "arch_exclude": {k: list(v) for k, v in self.arch_exclude.items()},
            "options": list(self.options),
            "global_options": list(self.global_options),
            "repodir": None if self.repodir is None else str(self.repodir),
        }


@dataclass
class BootcConfig:
    image: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> "BootcConfig":
        return cls(image=_opt_str(_mapping(raw, "bootc").get("image")))

    def to_dict(self) -> Dict[str, Any]:
        return {"image": self.image}


@dataclass
class Script:
    id: Optional[str] = None
    name: Optional[str] = None
    file: Optional[Path] = None
    inline: Optional[str] = None
    chroot: Optional[bool] = None
    needs: List[str] = field(default_factory=list)
    # Lower runs earlier.
    priority: int = 50

    @classmethod
    def from_dict(cls, raw: Any) -> "Script":
        raw = _mapping(raw, "script")
        priority = raw.get("priority")
        return cls(
            id=_opt_str(raw.get("id")),
            name=_opt_str(raw.get("name")),
            file=_opt_path(raw.get("file")),
            inline=_opt_str(raw.get("inline")),
            chroot=_opt_bool(raw.get("chroot"), "script.chroot"),
            needs=_str_list(raw.get("needs"), "script.needs"),
            priority=50 if priority is None else _opt_int(priority, "script.priority"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "file": None if self.file is None else str(self.file),
            "inline": self.inline,
            "chroot": self.chroot,
            "needs": list(self.needs),
            "priority": self.priority,
        }


@dataclass
class ScriptsManifest:
    pre: List[Script] = field(default_factory=list)
    post: List[Script] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> "ScriptsManifest":
        raw = _mapping(raw, "scripts")
        for key in ("pre", "post"):
            if raw.get(key) is not None and not isinstance(raw[key], list):
                raise ManifestError(f"scripts.{key} must be a list")
        return cls(
            pre=[Script.from_dict(s) for s in raw.get("pre") or []],
            post=[Script.from_dict(s) for s in raw.get("post") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"pre": [s.to_dict() for s in self.pre], "post": [s.to_dict() for s in self.post]}


@dataclass
class Auth:
    username: str
    # crypt(3) hash, never plaintext
    password: Optional[str] = None
    groups: List[str] = field(default_factory=list)
    create_home: bool = True
    shell: Optional[str] = None
    uid: Optional[int] = None
    gid: Optional[int] = None
    ssh_keys: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Any) -> "Auth":
        raw = _mapping(raw, "user")
        if not raw.get("username"):
            raise ManifestError(f"User entry is missing 'username': {raw!r}")
        create_home = raw.get("create_home")
        return cls(
            username=str(raw["username"]),
            password=_opt_str(raw.get("password")),
            groups=_str_list(raw.get("groups"), "user.groups"),
            create_home=True if create_home is None else _opt_bool(create_home, "user.create_home"),
            shell=_opt_str(raw.get("shell")),
            uid=_opt_int(raw.get("uid"), "user.uid"),
            gid=_opt_int(raw.get("gid"), "user.gid"),
            ssh_keys=_str_list(raw.get("ssh_keys"), "user.ssh_keys"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "password": self.password,
            "groups": list(self.groups),
            "create_home": self.create_home,
            "shell": self.shell,
            "uid": self.uid,
            "gid": self.gid,
            "ssh_keys": list(self.ssh_keys),
        }


@dataclass
class Manifest:
    builder: Optional[str] = None
    import_: List[Path] = field(default_factory=list)
    distro: Optional[str] = None
    out_file: Optional[str] = None
    disk: Optional[PartitionLayout] = None
    dnf: DnfConfig = field(default_factory=DnfConfig)
    bootc: BootcConfig = field(default_factory=BootcConfig)
    scripts: ScriptsManifest = field(default_factory=ScriptsManifest)
    users: List[Auth] = field(default_factory=list)
    kernel_cmdline: Optional[str] = None
    iso: Optional[IsoConfig] = None
    bootloader: Bootloader = Bootloader.GRUB

    def get_volid(self) -> str:
        return self.iso.get_volid() if self.iso else DEFAULT_VOLID

    @classmethod
    def from_dict(cls, raw: Any) -> "Manifest":
        raw = _mapping(raw, "manifest")
        users = raw.get("users")
        if users is not None and not isinstance(users, list):
            raise ManifestError("users must be a list")
        return cls(
            builder=_opt_str(raw.get("builder")),
            import_=[Path(str(p)) for p in _str_list(raw.get("import"), "import")],
            distro=_opt_str(raw.get("distro")),
            out_file=_opt_str(raw.get("out_file")),
            disk=None if raw.get("disk") is None else PartitionLayout.from_dict(raw["disk"]),
            dnf=DnfConfig.from_dict(raw.get("dnf")),
            bootc=BootcConfig.from_dict(raw.get("bootc")),
            scripts=ScriptsManifest.from_dict(raw.get("scripts")),
            users=[Auth.from_dict(u) for u in users or []],
            kernel_cmdline=_opt_str(raw.get("kernel_cmdline")),
            iso=None if raw.get("iso") is None else IsoConfig.from_dict(raw["iso"]),
            bootloader=Bootloader.GRUB if raw.get("bootloader") is None else Bootloader.parse(raw["bootloader"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "builder": self.builder,
            "import": [str(p) for p in self.import_],
            "distro": self.distro,
            "out_file": self.out_file,
            "disk": None if self.disk is None else self.disk.to_dict(),
            "dnf": self.dnf.to_dict(),
            "bootc": self.bootc.to_dict(),
            "scripts": self.scripts.to_dict(),
            "users": [u.to_dict() for u in self.users],
            "kernel_cmdline": self.kernel_cmdline,
            "iso": None if self.iso is None else self.iso.to_dict(),
            "bootloader": self.bootloader.value,
        }
