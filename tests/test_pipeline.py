from pathlib import Path

import pytest

from katsu.errors import KatsuError
from katsu.lib import block, chroot, storage
from katsu.models import Auth, Manifest, OutputFormat
from katsu.pipeline import BuildCtx, run_pipeline
from katsu.state_store import ensure_defaults, load_state, save_state
from katsu.steps import (
    AddUsersStep,
    MountChrootStep,
    PartitionDiskStep,
    PrepareDiskStep,
    UnmountStep,
    WriteFstabStep,
)

from conftest import CmdRecorder


class RecordingStep:
    def __init__(self, step_id, seen):
        self.step_id = step_id
        self.seen = seen

    def run(self, ctx, state):
        self.seen.append(self.step_id)
        return state


def _ctx(tmp_path, manifest=None, **kwargs):
    return BuildCtx(
        manifest=manifest or Manifest(),
        output=kwargs.pop("output", OutputFormat.DISK_IMAGE),
        chroot=tmp_path / "chroot",
        target_arch="x86_64",
        **kwargs,
    )


def test_run_pipeline_start_stop_and_skip(tmp_path):
    seen = []
    steps = [RecordingStep(s, seen) for s in ("10_a", "20_b", "30_c", "40_d")]
    state = ensure_defaults({})
    state["execution"]["completed_steps"] = ["20_b"]

    result = run_pipeline(ctx=_ctx(tmp_path), state=state, steps=steps, stop_after="30_c")

    assert seen == ["10_a", "30_c"]
    assert result.ran_steps == ["10_a", "30_c"]
    assert result.skipped_steps == ["20_b"]
    assert result.state["execution"]["current_step"] is None

    seen.clear()
    result = run_pipeline(ctx=_ctx(tmp_path), state=state, steps=steps, start_at="30_c", force=True)
    assert seen == ["30_c", "40_d"]


def test_run_pipeline_unknown_step(tmp_path):
    with pytest.raises(KatsuError, match="99_nope"):
        run_pipeline(ctx=_ctx(tmp_path), state={}, steps=[RecordingStep("10_a", [])], start_at="99_nope")


def test_state_round_trip(tmp_path):
    for name in ("state.json", "state.yaml"):
        path = str(tmp_path / name)
        save_state(path, ensure_defaults({"execution": {"completed_steps": ["10_prepare_disk"]}}))
        assert load_state(path)["execution"]["completed_steps"] == ["10_prepare_disk"]
    assert load_state(str(tmp_path / "absent.json")) == {}


def test_disk_image_build_steps(monkeypatch, tmp_path, standard_layout):
    def respond(argv):
        if argv[0] == "losetup" and "--show" in argv:
            return "/dev/loop3\n"
        if argv[0] == "findmnt":
            return {
                str(tmp_path / "chroot"): "/dev/loop3p3",
                str(tmp_path / "chroot/boot"): "/dev/loop3p2",
                str(tmp_path / "chroot/boot/efi"): "/dev/loop3p1",
            }[argv[-1]]
        if argv[0] == "blkid":
            return f"uuid-{argv[-1][-1]}"
        return ""

    fake = CmdRecorder(respond)
    for module in (block, storage, chroot):
        monkeypatch.setattr(module, "run_cmd", fake)

    standard_layout.size = 4 * 1024**3
    manifest = Manifest(disk=standard_layout, users=[Auth(username="admin", ssh_keys=["ssh-ed25519 AAAA"])])
    ctx = _ctx(tmp_path, manifest, disk=str(tmp_path / "disk.img"))
    steps = [PrepareDiskStep(), PartitionDiskStep(), MountChrootStep(), WriteFstabStep(), AddUsersStep(), UnmountStep()]

    result = run_pipeline(ctx=ctx, state=ensure_defaults({}), steps=steps)

    exe = result.state["execution"]
    assert exe["disk"]["device"] == "/dev/loop3"
    assert exe["disk"]["partitions"] == ["/dev/loop3p1", "/dev/loop3p2", "/dev/loop3p3"]
    assert exe["mounts"] == []
    assert (tmp_path / "disk.img").stat().st_size == 4 * 1024**3
    assert "UUID=uuid-3\t/\text4" in (tmp_path / "chroot/etc/fstab").read_text()
    assert (tmp_path / "chroot/home/admin/.ssh/authorized_keys").exists()
    assert ["chroot", str(tmp_path / "chroot"), "useradd", "-m", "admin"] in fake.calls
    assert fake.calls[-1] == ["losetup", "-d", "/dev/loop3"]
    umounts = [c[-1] for c in fake.calls if c[0] == "umount" and "-lf" not in c]
    assert umounts == [
        str(tmp_path / "chroot/boot/efi"),
        str(tmp_path / "chroot/boot"),
        str(tmp_path / "chroot"),
    ]


def test_folder_output_only_prepares_chroot(monkeypatch, tmp_path, standard_layout):
    fake = CmdRecorder()
    for module in (block, storage, chroot):
        monkeypatch.setattr(module, "run_cmd", fake)
    ctx = _ctx(tmp_path, Manifest(disk=standard_layout), output=OutputFormat.FOLDER)
    steps = [PrepareDiskStep(), PartitionDiskStep(), MountChrootStep(), WriteFstabStep(), AddUsersStep(), UnmountStep()]

    run_pipeline(ctx=ctx, state=ensure_defaults({}), steps=steps)

    assert fake.calls == []
    assert Path(ctx.chroot).is_dir()


def test_disk_image_without_size(tmp_path, standard_layout):
    ctx = _ctx(tmp_path, Manifest(disk=standard_layout), disk=str(tmp_path / "disk.img"))
    with pytest.raises(KatsuError, match="disk.size"):
        PrepareDiskStep().run(ctx, ensure_defaults({}))


def test_run_pipeline_rejects_inverted_bounds(tmp_path):
    steps = [RecordingStep(s, []) for s in ("10_a", "20_b")]
    with pytest.raises(KatsuError, match="comes before"):
        run_pipeline(ctx=_ctx(tmp_path), state={}, steps=steps, start_at="20_b", stop_after="10_a")
